import os

DEFAULT_INIT_CWND_PKTS = 10
DEFAULT_MSS_BYTES = 1460
DEFAULT_RESULTS_DIR = './results'


def get_env(key, default=None):
    value = os.environ.get(key)
    if value is None or value == '':
        return default
    return value


def _get_int_env(key, default):
    value = get_env(key)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        print(f"Ignoring {key}={value!r}: not an integer, using {default}")
        return default


def default_init_cwnd_pkts():
    return _get_int_env('INIT_CWND_PKTS', DEFAULT_INIT_CWND_PKTS)


def default_mss_bytes():
    return _get_int_env('MSS_BYTES', DEFAULT_MSS_BYTES)


def results_dir():
    return get_env('RESULTS_DIR', DEFAULT_RESULTS_DIR)
