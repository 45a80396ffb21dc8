import sys
import csv
import json
from collections import deque
from scapy.all import rdpcap, TCP, IP

from goodput.config import get_env, default_init_cwnd_pkts, default_mss_bytes
from goodput.model import TransferParameters, peak_rate_model, achieved_goodput_model

SYN = 0x02
ACK = 0x10


def _micros(pkt_time):
    return int(round(float(pkt_time) * 1_000_000))


def _payload_len(pkt):
    ip = pkt[IP]
    tcp = pkt[TCP]
    if ip.len is not None and ip.ihl is not None and tcp.dataofs is not None:
        return max(0, ip.len - ip.ihl * 4 - tcp.dataofs * 4)
    return len(tcp.payload)


def reverse_key(key):
    src, sport, dst, dport = key
    return (dst, dport, src, sport)


def _mss_option(pkt):
    for name, value in pkt[TCP].options:
        if name == 'MSS':
            return value
    return None


def extract_transfer(packets):
    """
    Find the TCP flow that carried the most payload and measure it.

    Returns a dict with the flow endpoints, payload bytes (retransmissions not
    counted), segment size, minimum RTT, elapsed time and the number of
    segments in the first flight, or None when no TCP data is present.
    """
    tcp_packets = [pkt for pkt in packets if TCP in pkt and IP in pkt]
    if not tcp_packets:
        print("No TCP packets in capture")
        return None

    payload_by_flow = {}
    for pkt in tcp_packets:
        key = (pkt[IP].src, pkt[TCP].sport, pkt[IP].dst, pkt[TCP].dport)
        payload_by_flow[key] = payload_by_flow.get(key, 0) + _payload_len(pkt)

    flow, flow_payload = max(payload_by_flow.items(), key=lambda item: item[1])
    if flow_payload == 0:
        print("No TCP payload in capture")
        return None
    src, sport, dst, dport = flow
    reverse = reverse_key(flow)

    mss_options = []
    rtt_samples = []
    syn_us = None  # SYN sent by the data sender
    synack_us = None  # SYN-ACK sent by the data sender
    seen_seqs = set()
    in_flight = deque()  # (end_seq, send_time) of segments sent once
    total_bytes = 0
    max_segment = 0
    retransmissions = 0
    first_flight_pkts = 0
    first_ack_seen = False
    start_us = None
    last_data_us = None
    last_ack_us = None
    highest_end_seq = None

    for pkt in tcp_packets:
        key = (pkt[IP].src, pkt[TCP].sport, pkt[IP].dst, pkt[TCP].dport)
        if key != flow and key != reverse:
            continue
        now = _micros(pkt.time)
        tcp = pkt[TCP]
        flags = int(tcp.flags)

        if flags & SYN:
            mss = _mss_option(pkt)
            if mss:
                mss_options.append(mss)
            # Handshake samples are only round-trips when timed at the data sender:
            # its SYN -> peer SYN-ACK, or its SYN-ACK -> peer handshake ACK
            if key == flow:
                if flags & ACK:
                    synack_us = now
                else:
                    syn_us = now
            elif flags & ACK and syn_us is not None:
                rtt_samples.append(now - syn_us)
                syn_us = None
            continue

        if key == reverse and synack_us is not None and flags & ACK:
            rtt_samples.append(now - synack_us)
            synack_us = None

        if key == flow:
            length = _payload_len(pkt)
            if length == 0:
                continue
            if start_us is None:
                start_us = now
            last_data_us = now
            end_seq = tcp.seq + length
            if tcp.seq in seen_seqs:
                retransmissions += 1
                # Karn: no RTT samples from retransmitted ranges
                in_flight = deque(s for s in in_flight if s[0] <= tcp.seq)
                continue
            seen_seqs.add(tcp.seq)
            total_bytes += length
            max_segment = max(max_segment, length)
            in_flight.append((end_seq, now))
            if highest_end_seq is None or end_seq > highest_end_seq:
                highest_end_seq = end_seq
            if not first_ack_seen:
                first_flight_pkts += 1
        elif flags & ACK and start_us is not None:
            acked = False
            while in_flight and in_flight[0][0] <= tcp.ack:
                _, sent_us = in_flight.popleft()
                rtt_samples.append(now - sent_us)
                acked = True
            if acked:
                first_ack_seen = True
            if highest_end_seq is not None and tcp.ack >= highest_end_seq:
                last_ack_us = now

    if start_us is None:
        print("No data segments found in the dominant flow")
        return None

    end_us = last_ack_us if last_ack_us is not None else last_data_us
    if mss_options:
        mss_bytes = min(mss_options)
    elif max_segment:
        mss_bytes = max_segment
    else:
        mss_bytes = default_mss_bytes()

    return {
        'src': src,
        'sport': sport,
        'dst': dst,
        'dport': dport,
        'total_bytes': total_bytes,
        'mss_bytes': mss_bytes,
        'min_rtt_us': min(rtt_samples) if rtt_samples else 0,
        'total_time_us': end_us - start_us,
        'first_flight_pkts': first_flight_pkts,
        'retransmissions': retransmissions,
        'rtt_samples': len(rtt_samples),
    }


def resolve_init_cwnd(transfer, init_cwnd_pkts=None):
    """Pick the initial window: explicit value, INIT_CWND_PKTS=auto (first flight), or the env default."""
    if init_cwnd_pkts is not None:
        return init_cwnd_pkts
    if get_env('INIT_CWND_PKTS') == 'auto' and transfer['first_flight_pkts'] > 0:
        return transfer['first_flight_pkts']
    return default_init_cwnd_pkts()


def to_parameters(transfer, init_cwnd_pkts=None):
    return TransferParameters(
        total_bytes=transfer['total_bytes'],
        init_cwnd_pkts=resolve_init_cwnd(transfer, init_cwnd_pkts),
        mss_bytes=transfer['mss_bytes'],
        min_rtt_us=transfer['min_rtt_us'],
        total_time_us=transfer['total_time_us'],
    )


def run_models(params):
    peak = peak_rate_model(params.total_bytes, params.init_cwnd_pkts,
                           params.mss_bytes, params.min_rtt_us)
    achieved = achieved_goodput_model(params.total_bytes, params.init_cwnd_pkts,
                                      params.mss_bytes, params.min_rtt_us,
                                      params.total_time_us)
    return peak, achieved


def analyze_pcap(pcap_path, init_cwnd_pkts=None):
    packets = rdpcap(pcap_path)
    if not packets:
        print("No packets in pcap")
        return {}

    transfer = extract_transfer(packets)
    if transfer is None:
        return {}

    params = to_parameters(transfer, init_cwnd_pkts)
    transfer['init_cwnd_pkts'] = params.init_cwnd_pkts
    peak, achieved = run_models(params)

    results = {
        'source': str(pcap_path),
        'transfer': transfer,
        'peak': peak.to_dict(),
        'achieved': achieved.to_dict(),
    }

    print(f"Flow: {transfer['src']}:{transfer['sport']} -> {transfer['dst']}:{transfer['dport']}")
    print(f"Total bytes: {transfer['total_bytes']}")
    print(f"MSS: {transfer['mss_bytes']} bytes")
    print(f"Initial cwnd: {params.init_cwnd_pkts} packets (first flight: {transfer['first_flight_pkts']})")
    print(f"Min RTT: {transfer['min_rtt_us'] / 1000:.2f} ms")
    print(f"Elapsed: {transfer['total_time_us'] / 1000:.2f} ms")
    print(f"Retransmissions: {transfer['retransmissions']}")
    _print_result('Peak rate', peak)
    _print_result('Achieved goodput', achieved)

    return results


def _print_result(name, result):
    if result.ok:
        print(f"{name}: {result.bytes_per_sec * 8 / 1_000_000:.2f} Mbps "
              f"({result.rtts_in_slow_start} RTTs in slow start)")
    else:
        print(f"{name}: {result.status.value}")


def write_csv(results, csv_path):
    transfer = results['transfer']
    peak = results['peak']
    achieved = results['achieved']
    with open(csv_path, 'w', newline='') as csvfile:
        writer = csv.writer(csvfile)
        writer.writerow(['Source', results['source']])
        writer.writerow([])
        writer.writerow(['Metric Name', 'Value'])
        writer.writerow(['Total Bytes', transfer['total_bytes']])
        writer.writerow(['MSS (bytes)', transfer['mss_bytes']])
        writer.writerow(['Initial cwnd (packets)', transfer['init_cwnd_pkts']])
        writer.writerow(['Min RTT (ms)', f"{transfer['min_rtt_us'] / 1000:.2f}"])
        writer.writerow(['Elapsed (ms)', f"{transfer['total_time_us'] / 1000:.2f}"])
        writer.writerow(['Retransmissions', transfer['retransmissions']])
        writer.writerow(['Peak Rate (bytes/s)', peak['bytes_per_sec']])
        writer.writerow(['Peak RTTs in Slow Start', peak['rtts_in_slow_start']])
        writer.writerow(['Peak Status', peak['status']])
        writer.writerow(['Achieved Goodput (bytes/s)', achieved['bytes_per_sec']])
        writer.writerow(['Achieved RTTs in Slow Start', achieved['rtts_in_slow_start']])
        writer.writerow(['Projected cwnd (packets)', achieved['projected_cwnd_pkts']])
        writer.writerow(['Achieved Status', achieved['status']])
    print(f"Results saved to {csv_path}")


def write_json(results, json_path):
    with open(json_path, 'w') as f:
        json.dump(results, f, indent=2)
    print(f"JSON results saved to {json_path}")


def main(argv=None):
    argv = sys.argv[1:] if argv is None else argv
    if len(argv) < 1:
        print("Usage: python -m goodput.analyze_pcap <pcap> [csv_path] [json_path]")
        print("  INIT_CWND_PKTS=<n|auto> and MSS_BYTES=<n> set model defaults")
        sys.exit(1)
    pcap_path = argv[0]
    csv_path = next((a for a in argv[1:] if a.endswith('.csv')), None)
    json_path = next((a for a in argv[1:] if a.endswith('.json')), None)

    results = analyze_pcap(pcap_path)
    if not results:
        sys.exit(1)
    if csv_path:
        write_csv(results, csv_path)
    if json_path:
        write_json(results, json_path)


if __name__ == "__main__":
    main()
