from goodput.model import (
    MICROS_IN_SEC,
    ModelResult,
    ModelStatus,
    SlowStartSchedule,
    TransferParameters,
    achieved_goodput_model,
    peak_rate_model,
    predicted_elapsed_us,
    slow_start_schedule,
)

__all__ = [
    'MICROS_IN_SEC',
    'ModelResult',
    'ModelStatus',
    'SlowStartSchedule',
    'TransferParameters',
    'achieved_goodput_model',
    'peak_rate_model',
    'predicted_elapsed_us',
    'slow_start_schedule',
]
