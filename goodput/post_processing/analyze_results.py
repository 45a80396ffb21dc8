#!/usr/bin/env python3
"""
Summaries and rankings over the model result JSON files in a results directory
"""
import json
import csv
import sys
from pathlib import Path

from goodput.config import results_dir as default_results_dir
from goodput.results_to_csv import efficiency


def load_results(results_dir, name):
    """Load model results for a specific transfer"""
    json_path = Path(results_dir) / f'{name}.json'
    if not json_path.exists():
        print(f"File not found: {json_path}")
        return None

    with open(json_path) as f:
        return json.load(f)


def _mbps(bytes_per_sec):
    return bytes_per_sec * 8 / 1_000_000


def print_summary(results_dir, name):
    """Print model summary"""
    data = load_results(results_dir, name)
    if not data:
        return

    transfer = data['transfer']
    peak = data['peak']
    achieved = data['achieved']

    print(f"\n{'=' * 60}")
    print(f"SUMMARY - {name}")
    print(f"{'=' * 60}")
    print(f"Source: {data.get('source', 'N/A')}")
    print(f"Total Bytes: {transfer['total_bytes']:,}")
    print(f"MSS: {transfer['mss_bytes']} bytes, initial cwnd: {transfer.get('init_cwnd_pkts', 'N/A')} packets")
    print(f"Min RTT: {transfer['min_rtt_us'] / 1000:.2f} ms")
    print(f"Elapsed: {transfer['total_time_us'] / 1000:.2f} ms")
    print()
    if peak['status'] == 'OK':
        print(f"Peak Rate: {_mbps(peak['bytes_per_sec']):.2f} Mbps "
              f"after {peak['rtts_in_slow_start']} full RTT(s)")
    else:
        print(f"Peak Rate: {peak['status']}")
    if achieved['status'] == 'OK':
        print(f"Achieved Goodput: {_mbps(achieved['bytes_per_sec']):.2f} Mbps "
              f"after {achieved['rtts_in_slow_start']} RTT(s) in slow start")
        print(f"Projected cwnd: {achieved['projected_cwnd_pkts']} packets")
    else:
        print(f"Achieved Goodput: {achieved['status']}")
    print(f"{'=' * 60}\n")


def find_model_mismatches(results_dir, names):
    """List transfers the slow-start model could not explain"""
    mismatched = []
    for name in names:
        data = load_results(results_dir, name)
        if not data:
            continue
        status = data['achieved']['status']
        if status != 'OK':
            mismatched.append((name, status))

    print(f"\n{'=' * 60}")
    print("MODEL MISMATCHES")
    print(f"{'=' * 60}")
    if not mismatched:
        print("✓ Every transfer fits the slow-start model")
    else:
        print(f"⚠ {len(mismatched)} transfer(s) did not fit:\n")
        for name, status in mismatched:
            print(f"  {name}: {status}")
    print(f"{'=' * 60}\n")
    return mismatched


def rank_by_efficiency(results_dir, names):
    """Rank transfers by achieved goodput as a share of the peak rate"""
    ranked = []
    for name in names:
        data = load_results(results_dir, name)
        if not data:
            continue
        eff = efficiency(data)
        if eff is not None:
            ranked.append((name, eff))
    ranked.sort(key=lambda x: x[1], reverse=True)

    print("🏆 Ranking by Efficiency (achieved / peak):")
    for i, (name, eff) in enumerate(ranked, 1):
        print(f"  {i}. {name:20} - {eff:.2f}%")
    print()
    return ranked


def export_comparison_csv(results_dir, names):
    """Export one row per transfer to results_dir/model_comparison.csv"""
    csv_path = Path(results_dir) / 'model_comparison.csv'

    with open(csv_path, 'w', newline='') as csvfile:
        writer = csv.writer(csvfile)
        writer.writerow(['Transfer', 'Total Bytes', 'Min RTT (us)', 'Elapsed (us)',
                         'Peak (bytes/s)', 'Achieved (bytes/s)', 'RTTs in Slow Start',
                         'Status', 'Efficiency (%)'])
        for name in names:
            data = load_results(results_dir, name)
            if not data:
                continue
            transfer = data['transfer']
            eff = efficiency(data)
            writer.writerow([
                name,
                transfer['total_bytes'],
                transfer['min_rtt_us'],
                transfer['total_time_us'],
                data['peak']['bytes_per_sec'],
                data['achieved']['bytes_per_sec'],
                data['achieved']['rtts_in_slow_start'],
                data['achieved']['status'],
                'N/A' if eff is None else f"{eff:.2f}",
            ])

    print(f"✓ Comparison exported to: {csv_path}\n")
    return csv_path


def main(results_dir=None):
    """Main function - runs all analyses"""
    print("\n" + "=" * 60)
    print("SLOW-START MODEL ANALYSIS")
    print("=" * 60)

    results_dir = Path(results_dir or default_results_dir())
    if not results_dir.exists():
        print(f"\n❌ '{results_dir}' directory not found!")
        print("Run analyze_pcap with a JSON output path first\n")
        return

    json_files = sorted(results_dir.glob('*.json'))
    if not json_files:
        print(f"\n❌ No result JSON files found in '{results_dir}'!")
        print("Run analyze_pcap with a JSON output path first\n")
        return

    print(f"\n✓ Found {len(json_files)} result file(s)\n")
    names = [f.stem for f in json_files]

    for name in names:
        print_summary(results_dir, name)

    find_model_mismatches(results_dir, names)
    rank_by_efficiency(results_dir, names)
    export_comparison_csv(results_dir, names)

    print("\n" + "=" * 60)
    print("ANALYSIS COMPLETED")
    print("=" * 60 + "\n")


def cli():
    main(sys.argv[1] if len(sys.argv) > 1 else None)


if __name__ == "__main__":
    cli()
