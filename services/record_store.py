"""Record Store Module

Long-term records behind the dialogue: profiles, assessments, diagnoses,
fitness and meal plans, cycle logs.

This module provides:
1. InMemoryRecordStore - dict-backed, for tests and ephemeral runs
2. JsonRecordStore - one JSON document per identity on disk

Every operation raises RecordStoreError on failure.
"""
import json
import logging
import re
import threading
from copy import deepcopy
from dataclasses import asdict
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

from core.errors import RecordStoreError
from models.records import CyclePrediction, HealthAssessment, UserProfile, profile_or_none
from models.session import CycleData, FitnessData, MealsData

logger = logging.getLogger(__name__)

COLLECTIONS = ("assessments", "diagnoses", "fitness_plans", "meal_plans", "cycle_data")


def _empty_record() -> Dict[str, Any]:
    record: Dict[str, Any] = {"profile": None}
    for name in COLLECTIONS:
        record[name] = []
    return record


def _timestamp() -> str:
    return datetime.now().isoformat()


class RecordStore:
    """Interface the engine and the advisor read and write through."""

    def get_profile(self, identity: str) -> Optional[UserProfile]:
        raise NotImplementedError

    def save_profile(self, identity: str, profile: UserProfile) -> None:
        raise NotImplementedError

    def get_latest_assessment(self, identity: str) -> Optional[HealthAssessment]:
        raise NotImplementedError

    def save_assessment(self, identity: str, assessment: HealthAssessment) -> None:
        raise NotImplementedError

    def save_diagnosis(self, identity: str, symptoms: str, result: str) -> None:
        raise NotImplementedError

    def save_fitness_plan(self, identity: str, data: FitnessData, plan: str) -> None:
        raise NotImplementedError

    def save_meal_plan(self, identity: str, data: MealsData, plan: str) -> None:
        raise NotImplementedError

    def save_cycle_data(self, identity: str, data: CycleData, prediction: CyclePrediction) -> None:
        raise NotImplementedError


class InMemoryRecordStore(RecordStore):

    def __init__(self):
        self._records: Dict[str, Dict[str, Any]] = {}
        self._lock = threading.Lock()

    # === Reads ===

    def get_profile(self, identity: str) -> Optional[UserProfile]:
        with self._lock:
            record = self._records.get(identity)
            return profile_or_none(record["profile"]) if record else None

    def get_latest_assessment(self, identity: str) -> Optional[HealthAssessment]:
        with self._lock:
            record = self._records.get(identity)
            if not record or not record["assessments"]:
                return None
            return HealthAssessment.from_dict(record["assessments"][-1])

    def history(self, identity: str, collection: str) -> List[Dict[str, Any]]:
        """Copy of one collection for an identity (oldest first)."""
        with self._lock:
            record = self._records.get(identity)
            return deepcopy(record[collection]) if record else []

    # === Writes ===

    def save_profile(self, identity: str, profile: UserProfile) -> None:
        entry = dict(profile.to_dict(), updated_at=_timestamp())
        self._write(identity, "save_profile", lambda record: record.__setitem__("profile", entry))
        logger.info(f"Profile saved for {identity}")

    def save_assessment(self, identity: str, assessment: HealthAssessment) -> None:
        self._append(identity, "save_assessment", "assessments", assessment.to_dict())

    def save_diagnosis(self, identity: str, symptoms: str, result: str) -> None:
        self._append(identity, "save_diagnosis", "diagnoses", {
            "symptoms": symptoms,
            "possible_conditions": result,
            "created_at": _timestamp(),
        })

    def save_fitness_plan(self, identity: str, data: FitnessData, plan: str) -> None:
        self._append(identity, "save_fitness_plan", "fitness_plans", {
            "workout_plan": asdict(data),
            "plan_text": plan,
            "created_at": _timestamp(),
        })

    def save_meal_plan(self, identity: str, data: MealsData, plan: str) -> None:
        self._append(identity, "save_meal_plan", "meal_plans", {
            "dietary_preferences": asdict(data),
            "plan_text": plan,
            "created_at": _timestamp(),
        })

    def save_cycle_data(self, identity: str, data: CycleData, prediction: CyclePrediction) -> None:
        self._append(identity, "save_cycle_data", "cycle_data", {
            "cycle_logs": {
                "last_period": data.last_period.isoformat(),
                "cycle_length": data.cycle_length,
            },
            "predictions": prediction.to_dict(),
            "created_at": _timestamp(),
        })

    def _append(self, identity: str, operation: str, collection: str, entry: Dict[str, Any]):
        self._write(identity, operation, lambda record: record[collection].append(entry))

    def _write(self, identity: str, operation: str, mutate):
        with self._lock:
            record = deepcopy(self._records.get(identity) or _empty_record())
            mutate(record)
            try:
                self._commit(identity, record)
            except OSError as e:
                logger.error(f"Error in {operation} for {identity}: {e}")
                raise RecordStoreError(operation, identity, e) from e
            self._records[identity] = record

    def _commit(self, identity: str, record: Dict[str, Any]):
        """Hook for durable stores; called before the in-memory copy is replaced."""


class JsonRecordStore(InMemoryRecordStore):
    """Persists each identity's records to ``<directory>/<identity>.json``."""

    def __init__(self, directory: Path):
        super().__init__()
        self.directory = Path(directory)
        self.directory.mkdir(parents=True, exist_ok=True)
        self._load_from_disk()

    def _path(self, identity: str) -> Path:
        safe = re.sub(r"[^A-Za-z0-9_.@+-]", "_", identity)
        return self.directory / f"{safe}.json"

    def _commit(self, identity: str, record: Dict[str, Any]):
        path = self._path(identity)
        tmp = path.with_suffix(".json.tmp")
        with open(tmp, "w") as f:
            json.dump(dict(record, identity=identity), f, indent=2)
        tmp.replace(path)

    def _load_from_disk(self):
        """Load every stored record."""
        for path in self.directory.glob("*.json"):
            try:
                with open(path) as f:
                    data = json.load(f)
                identity = data.pop("identity")
                record = _empty_record()
                record.update(data)
                self._records[identity] = record
            except (OSError, ValueError, KeyError) as e:
                logger.warning(f"Failed to load records {path}: {e}")

        logger.info(f"Loaded records for {len(self._records)} user(s)")
