#!/usr/bin/env python3
"""
Script to plot achieved goodput against the slow-start peak rate
"""
import argparse
from pathlib import Path
import pandas as pd
import matplotlib.pyplot as plt

from goodput.config import default_init_cwnd_pkts, default_mss_bytes
from goodput.model import achieved_goodput_model, peak_rate_model, predicted_elapsed_us


def plot_batch(batch_csv: Path, output: Path = None, show=False):
    """Bar chart of peak vs achieved rate per transfer, from a batch_models output CSV"""
    if not batch_csv.exists():
        print('Error: file not found:', batch_csv)
        raise SystemExit(1)

    results = pd.read_csv(batch_csv)
    if results.empty:
        print('Error: no rows in', batch_csv)
        raise SystemExit(1)

    if 'label' in results.columns:
        labels = results['label'].astype(str)
    else:
        labels = pd.Series([f'#{i}' for i in range(len(results))])
    positions = range(len(results))
    width = 0.4

    fig, (ax1, ax2) = plt.subplots(2, 1, figsize=(12, 9))
    fig.suptitle('Achieved Goodput vs Slow-Start Peak Rate', fontsize=16)

    ax1.bar([p - width / 2 for p in positions], results['peak_bps'] * 8 / 1e6,
            width, label='Peak', color='blue', alpha=0.7)
    ax1.bar([p + width / 2 for p in positions], results['achieved_bps'] * 8 / 1e6,
            width, label='Achieved', color='green', alpha=0.7)
    ax1.set_title('Rate (Mbps)')
    ax1.set_xticks(list(positions))
    ax1.set_xticklabels(labels, rotation=45, ha='right')
    ax1.set_ylabel('Mbps')
    ax1.legend()
    ax1.grid(True, alpha=0.3)

    # Transfers with a failed model have no efficiency
    ax2.bar(list(positions), results['efficiency'].fillna(0), color='red', alpha=0.7)
    ax2.set_title('Efficiency (achieved / peak, %)')
    ax2.set_xticks(list(positions))
    ax2.set_xticklabels(labels, rotation=45, ha='right')
    ax2.set_ylabel('%')
    ax2.grid(True, alpha=0.3)

    plt.tight_layout()
    out_png = output or batch_csv.with_suffix('.png')
    plt.savefig(out_png, dpi=300, bbox_inches='tight')
    if show:
        plt.show()
    plt.close(fig)

    print(f"Plot saved to: {out_png}")
    return out_png


def goodput_curve(total_bytes, init_cwnd_pkts, mss_bytes, min_rtt_us, points=200):
    """
    Sample achieved_goodput_model over elapsed times from the fastest explainable
    transfer up to the zero-slow-start prediction times 2.

    Returns a DataFrame with elapsed_us, achieved_bps, rtts and status columns.
    """
    slowest_us = predicted_elapsed_us(total_bytes, init_cwnd_pkts, mss_bytes, min_rtt_us, 0)
    peak = peak_rate_model(total_bytes, init_cwnd_pkts, mss_bytes, min_rtt_us)
    fastest_us = min_rtt_us * (peak.rtts_in_slow_start + 1)
    stop_us = 2 * slowest_us
    step = max(1, (stop_us - fastest_us) // points)

    rows = []
    for elapsed_us in range(fastest_us, stop_us + 1, step):
        result = achieved_goodput_model(total_bytes, init_cwnd_pkts, mss_bytes,
                                        min_rtt_us, elapsed_us)
        rows.append({
            'elapsed_us': elapsed_us,
            'achieved_bps': result.bytes_per_sec,
            'rtts': result.rtts_in_slow_start,
            'status': result.status.value,
        })
    return pd.DataFrame(rows)


def plot_curve(total_bytes, init_cwnd_pkts, mss_bytes, min_rtt_us, output: Path, show=False):
    """Plot modelled goodput and attributed slow-start RTTs against elapsed time"""
    curve = goodput_curve(total_bytes, init_cwnd_pkts, mss_bytes, min_rtt_us)
    curve = curve[curve['status'] == 'OK']
    peak = peak_rate_model(total_bytes, init_cwnd_pkts, mss_bytes, min_rtt_us)

    fig, (ax1, ax2) = plt.subplots(2, 1, figsize=(12, 9), sharex=True)
    fig.suptitle(f'Slow-Start Model - {total_bytes:,} bytes, cwnd {init_cwnd_pkts}, '
                 f'MSS {mss_bytes}, min RTT {min_rtt_us / 1000:.1f} ms', fontsize=14)

    elapsed_ms = curve['elapsed_us'] / 1000
    ax1.plot(elapsed_ms, curve['achieved_bps'] * 8 / 1e6, label='Achieved', color='green')
    ax1.axhline(peak.bytes_per_sec * 8 / 1e6, label='Peak', color='blue', linestyle='--')
    ax1.set_title('Goodput (Mbps)')
    ax1.set_ylabel('Mbps')
    ax1.legend()
    ax1.grid(True, alpha=0.3)

    ax2.step(elapsed_ms, curve['rtts'], where='post', color='red')
    ax2.set_title('RTTs in Slow Start')
    ax2.set_xlabel('Elapsed (ms)')
    ax2.set_ylabel('Count')
    ax2.grid(True, alpha=0.3)

    plt.tight_layout()
    plt.savefig(output, dpi=300, bbox_inches='tight')
    if show:
        plt.show()
    plt.close(fig)

    print(f"Plot saved to: {output}")
    return output


def _parse_args(argv=None):
    parser = argparse.ArgumentParser(description='Plot slow-start model results')
    parser.add_argument('--batch-csv', '-b', type=str, default=None,
                        help='Output CSV of goodput.batch_models to plot')
    parser.add_argument('--curve', action='store_true',
                        help='Plot the model curve for fixed transfer parameters')
    parser.add_argument('--total-bytes', type=int, default=None)
    parser.add_argument('--init-cwnd', type=int, default=None,
                        help='Initial cwnd in packets (default: INIT_CWND_PKTS or 10)')
    parser.add_argument('--mss', type=int, default=None,
                        help='Segment size in bytes (default: MSS_BYTES or 1460)')
    parser.add_argument('--min-rtt-ms', type=float, default=None)
    parser.add_argument('--output', '-o', type=str, default=None)
    parser.add_argument('--show', action='store_true', help='Open an interactive window')
    return parser.parse_args(argv)


def main(argv=None):
    args = _parse_args(argv)
    output = Path(args.output).expanduser().resolve() if args.output else None

    if args.curve:
        if args.total_bytes is None or args.min_rtt_ms is None:
            print('Error: --curve needs --total-bytes and --min-rtt-ms')
            raise SystemExit(1)
        init_cwnd = args.init_cwnd or default_init_cwnd_pkts()
        mss = args.mss or default_mss_bytes()
        min_rtt_us = int(round(args.min_rtt_ms * 1000))
        try:
            plot_curve(args.total_bytes, init_cwnd, mss, min_rtt_us,
                       output or Path('goodput_curve.png'), show=args.show)
        except ValueError as e:
            print(f'Error: {e}')
            raise SystemExit(1)
        return

    if args.batch_csv:
        plot_batch(Path(args.batch_csv).expanduser().resolve(), output, show=args.show)
        return

    print('Error: pass --batch-csv PATH or --curve')
    raise SystemExit(1)


if __name__ == "__main__":
    main()
