#!/usr/bin/env python3
"""
Script to convert model result JSON files (written by analyze_pcap) to summary CSVs
"""
import json
import csv
import sys
import os

from goodput.config import results_dir as default_results_dir

SUMMARY_ROWS = [
    ('Total Bytes', 'transfer', 'total_bytes'),
    ('MSS (bytes)', 'transfer', 'mss_bytes'),
    ('Initial cwnd (packets)', 'transfer', 'init_cwnd_pkts'),
    ('Min RTT (us)', 'transfer', 'min_rtt_us'),
    ('Elapsed (us)', 'transfer', 'total_time_us'),
    ('Peak Rate (bytes/s)', 'peak', 'bytes_per_sec'),
    ('Peak RTTs in Slow Start', 'peak', 'rtts_in_slow_start'),
    ('Peak Last Full cwnd (packets)', 'peak', 'last_full_cwnd_pkts'),
    ('Peak Status', 'peak', 'status'),
    ('Achieved Goodput (bytes/s)', 'achieved', 'bytes_per_sec'),
    ('Achieved RTTs in Slow Start', 'achieved', 'rtts_in_slow_start'),
    ('Projected cwnd (packets)', 'achieved', 'projected_cwnd_pkts'),
    ('Final cwnd (packets)', 'achieved', 'last_full_cwnd_pkts'),
    ('Achieved Status', 'achieved', 'status'),
]


def efficiency(data):
    """Achieved goodput as a percentage of the peak rate, or None if either model failed"""
    peak = data.get('peak', {})
    achieved = data.get('achieved', {})
    if peak.get('status') != 'OK' or achieved.get('status') != 'OK':
        return None
    if not peak.get('bytes_per_sec'):
        return None
    return achieved['bytes_per_sec'] / peak['bytes_per_sec'] * 100


def json_to_summary_csv(json_path, summary_csv_path):
    """
    Convert a model result JSON file to a two-column summary CSV

    Args:
        json_path: Path to the input JSON file
        summary_csv_path: Path to the summary CSV file
    """
    with open(json_path, 'r') as f:
        data = json.load(f)

    with open(summary_csv_path, 'w', newline='') as csvfile:
        writer = csv.writer(csvfile)

        writer.writerow(['Metric', 'Value'])
        writer.writerow(['Source', data.get('source', '')])
        for label, section, key in SUMMARY_ROWS:
            writer.writerow([label, data.get(section, {}).get(key, 0)])

        eff = efficiency(data)
        writer.writerow(['Efficiency (%)', 'N/A' if eff is None else f"{eff:.2f}"])

    print(f"Summary CSV generated: {summary_csv_path}")
    return summary_csv_path


def batch_convert(results_dir=None):
    """
    Convert all result JSON files in the results directory to summary CSVs

    Args:
        results_dir: Directory containing the JSON files (default: RESULTS_DIR)
    """
    results_dir = results_dir or default_results_dir()
    if not os.path.exists(results_dir):
        print(f"Directory not found: {results_dir}")
        return []

    json_files = sorted(f for f in os.listdir(results_dir) if f.endswith('.json'))

    if not json_files:
        print(f"No JSON files found in {results_dir}")
        return []

    print(f"Found {len(json_files)} JSON files")

    converted = []
    for json_file in json_files:
        json_path = os.path.join(results_dir, json_file)
        base_name = json_file[:-len('.json')]
        summary_csv_path = os.path.join(results_dir, f'{base_name}_summary.csv')

        try:
            converted.append(json_to_summary_csv(json_path, summary_csv_path))
        except (OSError, json.JSONDecodeError, AttributeError) as e:
            print(f"Error converting {json_file}: {e}")
    return converted


def main(argv=None):
    argv = sys.argv[1:] if argv is None else argv
    if argv:
        if argv[0] == '--batch':
            batch_convert(argv[1] if len(argv) > 1 else None)
        else:
            json_path = argv[0]

            if not os.path.exists(json_path):
                print(f"File not found: {json_path}")
                sys.exit(1)

            base_name = json_path[:-len('.json')] if json_path.endswith('.json') else json_path
            summary_csv_path = argv[1] if len(argv) > 1 else f'{base_name}_summary.csv'
            json_to_summary_csv(json_path, summary_csv_path)
    else:
        print("Usage:")
        print("  python -m goodput.results_to_csv <json_file> [summary_csv_file]")
        print("  python -m goodput.results_to_csv --batch [results_dir]")
        sys.exit(1)


if __name__ == "__main__":
    main()
