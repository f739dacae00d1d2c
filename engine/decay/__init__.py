from .scheduler import (
    DecayScheduler,
    SchedulerState,
    SchedulerStatus,
    apply_decay,
    decay_label,
)
