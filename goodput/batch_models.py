#!/usr/bin/env python3
"""
Script to run both slow-start models over a table of transfers
"""
import sys
import os
import numbers
import pandas as pd

from goodput.model import peak_rate_model, achieved_goodput_model

INPUT_COLUMNS = ['total_bytes', 'init_cwnd_pkts', 'mss_bytes', 'min_rtt_us', 'total_time_us']


def _cell_int(value):
    """Whole-number cell as int; None for blank or fractional cells so the models reject the row"""
    if isinstance(value, numbers.Integral) and not isinstance(value, bool):
        return int(value)
    if pd.isna(value):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if not number.is_integer():
        return None
    return int(number)


def evaluate_row(row):
    total_bytes = _cell_int(row['total_bytes'])
    init_cwnd_pkts = _cell_int(row['init_cwnd_pkts'])
    mss_bytes = _cell_int(row['mss_bytes'])
    min_rtt_us = _cell_int(row['min_rtt_us'])
    total_time_us = _cell_int(row['total_time_us'])

    peak = peak_rate_model(total_bytes, init_cwnd_pkts, mss_bytes, min_rtt_us)
    achieved = achieved_goodput_model(total_bytes, init_cwnd_pkts, mss_bytes,
                                      min_rtt_us, total_time_us)

    # Achieved over peak, only meaningful when both models succeeded
    eff = None
    if peak.ok and achieved.ok and peak.bytes_per_sec > 0:
        eff = round(achieved.bytes_per_sec / peak.bytes_per_sec * 100, 2)

    return pd.Series({
        'peak_bps': peak.bytes_per_sec,
        'peak_rtts': peak.rtts_in_slow_start,
        'peak_status': peak.status.value,
        'achieved_bps': achieved.bytes_per_sec,
        'achieved_rtts': achieved.rtts_in_slow_start,
        'achieved_status': achieved.status.value,
        'projected_cwnd_pkts': achieved.projected_cwnd_pkts,
        'final_cwnd_pkts': achieved.last_full_cwnd_pkts,
        'efficiency': eff,
    })


def evaluate_transfers(transfers):
    """
    Run peak_rate_model and achieved_goodput_model on every row

    Args:
        transfers: DataFrame with the INPUT_COLUMNS (extra columns are kept)

    Returns:
        A new DataFrame with the model outputs appended
    """
    missing = [c for c in INPUT_COLUMNS if c not in transfers.columns]
    if missing:
        raise ValueError(f"missing columns: {', '.join(missing)}")
    if transfers.empty:
        return transfers.copy()

    outputs = transfers.apply(evaluate_row, axis=1)
    return pd.concat([transfers.reset_index(drop=True), outputs.reset_index(drop=True)], axis=1)


def evaluate_csv(input_csv_path, output_csv_path):
    transfers = pd.read_csv(input_csv_path)
    results = evaluate_transfers(transfers)
    results.to_csv(output_csv_path, index=False)

    ok = (results['achieved_status'] == 'OK').sum() if not results.empty else 0
    print(f"✓ Evaluated {len(results)} transfer(s), {ok} with an OK goodput model")
    print(f"✓ Results written to: {output_csv_path}")
    return results


def main(argv=None):
    argv = sys.argv[1:] if argv is None else argv
    if len(argv) < 2:
        print("Usage: python -m goodput.batch_models <transfers_csv> <output_csv>")
        print(f"\nInput columns: {', '.join(INPUT_COLUMNS)} [, label]")
        sys.exit(1)

    input_csv, output_csv = argv[0], argv[1]
    if not os.path.exists(input_csv):
        print(f"✗ File not found: {input_csv}")
        sys.exit(1)

    try:
        evaluate_csv(input_csv, output_csv)
    except ValueError as e:
        print(f"✗ {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
