"""Exceptions raised by the SimRec training and serving pipeline."""

from typing import Any, Dict, Iterable, Optional


class SimRecError(Exception):
    """Base exception for SimRec errors."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class MalformedEventError(SimRecError):
    """Raised when an event carries a type outside the recognized set.

    Ingestion aborts on the first such event; it is never silently dropped.
    """

    def __init__(
        self,
        event_name: Any,
        allowed: Iterable[str],
        details: Optional[Dict[str, Any]] = None,
    ):
        allowed = sorted(allowed)
        message = (
            f"Unrecognized event type '{event_name}'. "
            f"Expected one of: {', '.join(allowed)}"
        )
        super().__init__(
            message=message,
            details=details or {"event": str(event_name), "allowed": allowed},
        )
        self.event_name = event_name


class EmptyDatasetError(SimRecError):
    """Raised when a dataset required for training is empty.

    Attributes:
        dataset: Which dataset was empty: "preferences", "users", "items"
            or "triples".
    """

    DESCRIPTIONS = {
        "preferences": "No preference events found for this algorithm",
        "users": "User population is empty",
        "items": "Item population is empty",
        "triples": (
            "No preference triples left after mapping events to the "
            "user and item populations"
        ),
    }

    def __init__(self, dataset: str, details: Optional[Dict[str, Any]] = None):
        description = self.DESCRIPTIONS.get(dataset, f"Dataset '{dataset}' is empty")
        super().__init__(
            message=f"{description}. Cannot train on an empty {dataset} dataset.",
            details=details or {"dataset": dataset},
        )
        self.dataset = dataset


class ModelNotFoundError(SimRecError):
    """Raised when no published training run can be found."""

    def __init__(self, model_dir: str, run_id: Optional[str] = None):
        if run_id is None:
            message = f"No trained model found in '{model_dir}'. Please train a model first."
        else:
            message = f"Training run '{run_id}' not found in '{model_dir}'."
        super().__init__(
            message=message,
            details={"model_dir": str(model_dir), "run_id": run_id},
        )
