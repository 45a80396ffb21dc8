"""
Analytical slow-start models for a finished TCP transfer.

peak_rate_model gives the highest rate a transfer could have reached if it never
left slow start; achieved_goodput_model back-solves the rate achieved after slow
start from the observed elapsed time. Both return a ModelResult and never raise
for bad numeric input; errors are reported through ModelResult.status.
"""
from dataclasses import dataclass
from datetime import timedelta
from enum import Enum

MICROS_IN_SEC = 1_000_000


class ModelStatus(Enum):
    OK = 'OK'
    MINRTT_IS_ZERO = 'MINRTT_IS_ZERO'
    INIT_CWND_SLOWER_THAN_1BPMS = 'INIT_CWND_SLOWER_THAN_1BPMS'
    TRANSFER_FASTER_THAN_MODEL = 'TRANSFER_FASTER_THAN_MODEL'
    INVALID_PARAMETERS = 'INVALID_PARAMETERS'


@dataclass
class TransferParameters:
    total_bytes: int
    init_cwnd_pkts: int
    mss_bytes: int
    min_rtt_us: int
    total_time_us: int = 0


@dataclass
class ModelResult:
    bytes_per_sec: int
    rtts_in_slow_start: int
    projected_cwnd_pkts: int
    last_full_cwnd_pkts: int
    status: ModelStatus = ModelStatus.OK

    @property
    def ok(self) -> bool:
        return self.status is ModelStatus.OK

    def to_dict(self):
        return {
            'bytes_per_sec': self.bytes_per_sec,
            'rtts_in_slow_start': self.rtts_in_slow_start,
            'projected_cwnd_pkts': self.projected_cwnd_pkts,
            'last_full_cwnd_pkts': self.last_full_cwnd_pkts,
            'status': self.status.value,
        }


@dataclass
class SlowStartSchedule:
    rtts_to_last: int
    last_full_cwnd_pkts: int
    ss_pkts: int
    last_rtt_pkts: int


def _error(status: ModelStatus) -> ModelResult:
    return ModelResult(0, 0, 0, 0, status)


def _is_int(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def to_micros(value):
    """Return a duration as integer microseconds, or None if it is not one."""
    if isinstance(value, timedelta):
        return value // timedelta(microseconds=1)
    if _is_int(value):
        return value
    return None


def _valid_static(total_bytes, init_cwnd_pkts, mss_bytes, min_rtt_us) -> bool:
    if not all(_is_int(v) for v in (total_bytes, init_cwnd_pkts, mss_bytes)):
        return False
    if min_rtt_us is None or min_rtt_us < 0:
        return False
    # total_bytes == 0 gives zero packets and no round-trip to model
    return total_bytes > 0 and init_cwnd_pkts >= 1 and mss_bytes >= 1


def xfer_pkts(total_bytes: int, mss_bytes: int) -> int:
    return -(-total_bytes // mss_bytes)


def slow_start_schedule(xfer_pkts: int, init_cwnd_pkts: int) -> SlowStartSchedule:
    """
    Split a transfer of xfer_pkts packets into full slow-start round-trips and
    a final, possibly partial, one.

    The number of round-trips to send everything without leaving slow start is
    the inverse of the geometric series init * (2^k - 1), i.e.
    ceil(log2(xfer_pkts / init + 1)). It is computed with integers so exact
    powers of two do not depend on float rounding.
    """
    if xfer_pkts < 1 or init_cwnd_pkts < 1:
        raise ValueError(f"need xfer_pkts >= 1 and init_cwnd_pkts >= 1, "
                         f"got {xfer_pkts} and {init_cwnd_pkts}")

    # smallest k with 2^k >= ceil((xfer + init) / init)
    ratio = -(-(xfer_pkts + init_cwnd_pkts) // init_cwnd_pkts)
    rtts_total = (ratio - 1).bit_length()
    rtts_to_last = rtts_total - 1

    last_full_cwnd_pkts = 0
    if rtts_to_last > 0:
        last_full_cwnd_pkts = init_cwnd_pkts << (rtts_to_last - 1)

    # Packets sent before the last round-trip
    ss_pkts = ((1 << rtts_to_last) - 1) * init_cwnd_pkts
    last_rtt_pkts = xfer_pkts - ss_pkts

    return SlowStartSchedule(rtts_to_last, last_full_cwnd_pkts, ss_pkts, last_rtt_pkts)


def peak_rate_model(total_bytes, init_cwnd_pkts, mss_bytes, min_rtt) -> ModelResult:
    """
    Highest rate (bytes/s) the transfer can exhibit when it stays in slow start
    for its whole duration.

    Args:
        total_bytes: Bytes transferred
        init_cwnd_pkts: Initial congestion window in packets
        mss_bytes: Segment size in bytes
        min_rtt: Minimum RTT, integer microseconds or timedelta
    """
    min_rtt_us = to_micros(min_rtt)
    if min_rtt_us == 0:
        return _error(ModelStatus.MINRTT_IS_ZERO)
    if not _valid_static(total_bytes, init_cwnd_pkts, mss_bytes, min_rtt_us):
        return _error(ModelStatus.INVALID_PARAMETERS)

    pkts = xfer_pkts(total_bytes, mss_bytes)
    schedule = slow_start_schedule(pkts, init_cwnd_pkts)

    # The peak is set by whichever of the last two round-trips carried more
    max_rtt_pkts = max(schedule.last_full_cwnd_pkts, schedule.last_rtt_pkts)
    peak_bps = max_rtt_pkts * mss_bytes * MICROS_IN_SEC // min_rtt_us

    return ModelResult(
        bytes_per_sec=peak_bps,
        rtts_in_slow_start=schedule.rtts_to_last,
        projected_cwnd_pkts=init_cwnd_pkts + pkts,
        last_full_cwnd_pkts=max(init_cwnd_pkts, schedule.last_full_cwnd_pkts),
    )


def _model_time_us(total_bytes, mss_bytes, min_rtt_us, rtts, cumulative_pkts, tput_bps):
    # One extra packet transmission per round-trip while cwnd was growing
    ss_xmission_us = rtts * mss_bytes * MICROS_IN_SEC // tput_bps
    xmission_us = (total_bytes - cumulative_pkts * mss_bytes) * MICROS_IN_SEC // tput_bps
    return min_rtt_us * (rtts + 1) + xmission_us + ss_xmission_us


def predicted_elapsed_us(total_bytes, init_cwnd_pkts, mss_bytes, min_rtt, rtts) -> int:
    """Elapsed time the model predicts when slow start lasts exactly `rtts` round-trips."""
    min_rtt_us = to_micros(min_rtt)
    if not _valid_static(total_bytes, init_cwnd_pkts, mss_bytes, min_rtt_us) or min_rtt_us == 0:
        raise ValueError("invalid transfer parameters")
    if not _is_int(rtts) or rtts < 0:
        raise ValueError(f"rtts must be a non-negative integer, got {rtts!r}")

    cwnd = init_cwnd_pkts << rtts
    cumulative_pkts = init_cwnd_pkts * ((1 << rtts) - 1)
    if cumulative_pkts >= xfer_pkts(total_bytes, mss_bytes):
        raise ValueError(f"transfer already complete after {rtts} round-trips")
    tput_bps = cwnd * mss_bytes * MICROS_IN_SEC // min_rtt_us
    if tput_bps == 0:
        raise ValueError("congestion window too small for this RTT")
    return _model_time_us(total_bytes, mss_bytes, min_rtt_us, rtts, cumulative_pkts, tput_bps)


def achieved_goodput_model(total_bytes, init_cwnd_pkts, mss_bytes, min_rtt, total_time) -> ModelResult:
    """
    Rate (bytes/s) achieved after slow start, given the observed elapsed time.

    Round-trips are attributed to slow start one at a time, for as long as the
    observed time is shorter than what the model predicts if the transfer
    finished at the current window's rate. The remaining bytes and time then
    give the achieved rate.

    Args:
        total_bytes: Bytes transferred
        init_cwnd_pkts: Initial congestion window in packets
        mss_bytes: Segment size in bytes
        min_rtt: Minimum RTT, integer microseconds or timedelta
        total_time: Observed transfer time, integer microseconds or timedelta
    """
    min_rtt_us = to_micros(min_rtt)
    if min_rtt_us == 0:
        return _error(ModelStatus.MINRTT_IS_ZERO)
    total_time_us = to_micros(total_time)
    if not _valid_static(total_bytes, init_cwnd_pkts, mss_bytes, min_rtt_us):
        return _error(ModelStatus.INVALID_PARAMETERS)
    if total_time_us is None or total_time_us < 0:
        return _error(ModelStatus.INVALID_PARAMETERS)

    pkts = xfer_pkts(total_bytes, mss_bytes)

    rtts = 0
    cumulative_pkts = 0
    cwnd = init_cwnd_pkts
    # O(log2(pkts / init_cwnd_pkts)) iterations
    while pkts > cumulative_pkts:
        tput_bps = cwnd * mss_bytes * MICROS_IN_SEC // min_rtt_us
        if tput_bps == 0:
            return _error(ModelStatus.INIT_CWND_SLOWER_THAN_1BPMS)

        model_time_us = _model_time_us(total_bytes, mss_bytes, min_rtt_us,
                                       rtts, cumulative_pkts, tput_bps)
        if total_time_us >= model_time_us:
            # Could not have finished at this cwnd's rate: slow start ended here
            break
        rtts += 1
        cumulative_pkts += cwnd
        cwnd <<= 1

    if pkts <= cumulative_pkts:
        # Finished without leaving slow start. Undo the last increment to get
        # back to the last round-trip with a full cwnd outstanding.
        cwnd >>= 1
        cumulative_pkts -= cwnd
        rtts -= 1

    remaining_time_us = total_time_us - min_rtt_us * (rtts + 1)
    if remaining_time_us <= 0:
        # cwnd grew faster than exponentially, or started larger than assumed
        return _error(ModelStatus.TRANSFER_FASTER_THAN_MODEL)

    # The rtts drift packets were not timed above since the final rate is
    # unknown; count them in the remaining bytes instead.
    remaining_pkts = pkts - cumulative_pkts + rtts
    if remaining_pkts <= 0:
        return _error(ModelStatus.INVALID_PARAMETERS)
    remaining_bytes = remaining_pkts * mss_bytes
    achieved_bps = remaining_bytes * MICROS_IN_SEC // remaining_time_us

    projected_cwnd_pkts = achieved_bps * min_rtt_us // MICROS_IN_SEC // mss_bytes

    return ModelResult(
        bytes_per_sec=achieved_bps,
        rtts_in_slow_start=rtts,
        projected_cwnd_pkts=projected_cwnd_pkts,
        last_full_cwnd_pkts=cwnd,
    )
