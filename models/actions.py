"""Outbound actions produced by the router.

The router decides; the executor in ``services/dispatcher.py`` performs.
Actions are executed in list order, after the identity lock is released.
"""
from typing import Optional, Tuple, Union
from dataclasses import dataclass


@dataclass(frozen=True)
class Reply:
    text: str


@dataclass(frozen=True)
class Persist:
    """Call ``RecordStore.<operation>(identity, *args)``.

    On failure the error is logged and ``failure_reply`` (if any) is sent.
    A failed ``critical`` write also resets the session and drops the
    actions queued after it.
    """
    operation: str
    args: Tuple = ()
    failure_reply: Optional[str] = None
    critical: bool = False


@dataclass(frozen=True)
class Diagnose:
    symptoms: str


@dataclass(frozen=True)
class HealthAnalysis:
    pass


@dataclass(frozen=True)
class PeriodTips:
    pass


@dataclass(frozen=True)
class GeneralQuestion:
    question: str


OutboundAction = Union[Reply, Persist, Diagnose, HealthAnalysis, PeriodTips, GeneralQuestion]
