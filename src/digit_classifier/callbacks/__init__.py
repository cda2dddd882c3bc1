"""Training callbacks for digit_classifier."""

from digit_classifier.callbacks.checkpoint import AtomicCheckpointCallback
from digit_classifier.callbacks.divergence import DivergenceMonitorCallback
from digit_classifier.callbacks.model_info import ModelInfoCallback, model_summary_table
from digit_classifier.callbacks.plotting import TrainingHistoryCallback
from digit_classifier.callbacks.statistics import DatasetStatisticsCallback

__all__ = [
    "AtomicCheckpointCallback",
    "DatasetStatisticsCallback",
    "DivergenceMonitorCallback",
    "ModelInfoCallback",
    "TrainingHistoryCallback",
    "model_summary_table",
]
