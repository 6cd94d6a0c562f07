#!/usr/bin/env python3
"""
Stream HR / RR, raw ECG and accelerometer data from a Polar H10 over BLE.

Usage:
  python -m polar_pmd.polar_h10_stream [--device "POLAR H10 XXXXXXXX"] [--sensor ecg --sensor acc] [--sink json|lsl]

Stdout (json sink): "# connected" when linked, then one JSON line per push:
  {"stream": "HR", "values": [72], "ts": ...}
  {"stream": "RRi", "values": [850.59], "ts": ...}
  {"stream": "ECG", "device_ts_ns": ..., "samples": [[-12], [40], ...]}
  {"stream": "ACC", "device_ts_ns": ..., "samples": [[x, y, z], ...]}
Undecodable packets are reported on stderr as {"error": ...} and dropped.

By default the process auto-reconnects if the BLE link drops (--reconnect-delay 5, --max-reconnects 0 = unlimited).
"""

import argparse
import asyncio
import json
import logging
import queue
import sys
import time
import traceback
from datetime import datetime

try:
    from bleak import BleakClient, BleakScanner
except ImportError:
    print("Install bleak: pip install bleak", file=sys.stderr)
    sys.exit(1)

from polar_pmd.commands import START_PRESETS, encode_command
from polar_pmd.errors import PmdError
from polar_pmd.gatt import Characteristic, decode_notification
from polar_pmd.lsl_sink import LslSink
from polar_pmd.models import (
    AccFrame,
    BatteryLevel,
    CommandResult,
    ControlCommand,
    EcgFrame,
    FeaturesReply,
    MeasurementSensor,
)
from polar_pmd.sinks import JsonLinesSink, SampleSink, publish

logger = logging.getLogger(__name__)

SENSOR_CHOICES = {"ecg": MeasurementSensor.ECG, "acc": MeasurementSensor.ACC}
# Seconds between control point writes; the H10 rejects back-to-back requests
CONTROL_POINT_GAP = 0.5
# Seconds between link checks while streaming
LINK_CHECK_INTERVAL = 1.0
# Wait before the first reconnect; the adapter often needs longer after host sleep
FIRST_RECONNECT_DELAY = 15.0


def _ts():
    return f"[{datetime.now().strftime('%H:%M:%S')}] "


def _verbose(quiet: bool, msg: str, file=sys.stderr):
    if not quiet:
        print(_ts() + msg, file=file, flush=True)


def _has_service(client, characteristic: Characteristic) -> bool:
    return client.services.get_service(characteristic.service_uuid) is not None


def _is_supported(features: FeaturesReply | None, sensor: MeasurementSensor) -> bool:
    if features is None:
        return True
    return getattr(features.supported, sensor.name.lower(), False)


def _handle_notification(
    characteristic: Characteristic,
    data: bytes,
    sink: SampleSink,
    err_stream,
    first_packets: set,
    quiet: bool = False,
):
    """Decode one notification, publish it, report control point replies. Never raises PmdError."""
    try:
        record = decode_notification(characteristic, data)
    except PmdError as e:
        print(json.dumps({"error": str(e), "characteristic": characteristic.name}), file=err_stream, flush=True)
        return None

    if isinstance(record, (EcgFrame, AccFrame)):
        key = record.sensor.name
    else:
        key = characteristic.name
    if key not in first_packets:
        first_packets.add(key)
        print(_ts() + f"Received first {key} packet.", file=err_stream, flush=True)  # always log for diagnosis

    if isinstance(record, CommandResult):
        if record.ok:
            _verbose(quiet, f"{record.op_code.name} {record.sensor.name}: OK", file=err_stream)
            if record.settings is not None and not quiet:
                print(record.settings.describe(), file=err_stream, flush=True)
        else:
            print(
                _ts() + f"{record.op_code.name} {record.sensor.name} rejected: {record.status.name}",
                file=err_stream,
                flush=True,
            )
    elif isinstance(record, FeaturesReply):
        _verbose(quiet, f"Supported measurements: {record.supported}", file=err_stream)
    elif isinstance(record, BatteryLevel):
        _verbose(quiet, f"Battery level: {record.percent}%", file=err_stream)
    else:
        publish(record, sink, received_at=time.time())
    return record


async def _find_device(device_name: str | None, quiet: bool):
    """Resolve device name to a BleakDevice. Returns None if not found."""
    if device_name:
        _verbose(quiet, f"Looking for device by name: {device_name!r}")
        device = await BleakScanner.find_device_by_name(device_name)
        if device is None:
            print(_ts() + f"No device named '{device_name}' found.", file=sys.stderr)
            return None
        _verbose(quiet, f"Found device: {device.name} ({device.address})")
        return device
    print(_ts() + "Scanning for Polar H10 (2 min)...", file=sys.stderr)
    devices = await BleakScanner.discover(timeout=120.0)
    polar = [d for d in devices if d.name and "Polar H10" in d.name]
    _verbose(quiet, f"Scan complete: {len(devices)} device(s) total, {len(polar)} Polar H10.")
    if not polar:
        print(_ts() + "No Polar H10 found.", file=sys.stderr)
        return None
    device = polar[0]
    print(_ts() + f"Using: {device.name} ({device.address})", file=sys.stderr)
    return device


def _print_scan_tips(quiet: bool):
    if quiet:
        return
    print(
        _ts() + "Tips: Strap on & moisten electrodes; disconnect Polar Beat / other apps from H10; check Bluetooth is on.",
        file=sys.stderr,
    )


async def _write_command(client, command: ControlCommand, sensor: MeasurementSensor, quiet: bool):
    payload = encode_command(command, sensor)
    _verbose(quiet, f"PMD control point <- {command.name} {sensor.name} ({payload.hex(' ')})")
    await client.write_gatt_char(Characteristic.PMD_CONTROL_POINT.uuid, payload, response=True)
    await asyncio.sleep(CONTROL_POINT_GAP)


async def _start_streams(client, sensors: list[MeasurementSensor], quiet: bool) -> list[MeasurementSensor]:
    """Read supported measurements, then GET_SETTINGS + START each requested sensor."""
    features = None
    try:
        reply = decode_notification(
            Characteristic.PMD_CONTROL_POINT,
            await client.read_gatt_char(Characteristic.PMD_CONTROL_POINT.uuid),
        )
        if isinstance(reply, FeaturesReply):
            features = reply
            _verbose(quiet, f"Supported measurements: {reply.supported}")
    except PmdError as e:
        print(_ts() + f"Could not read supported measurements: {e}", file=sys.stderr)

    started = []
    for sensor in sensors:
        if not _is_supported(features, sensor):
            print(_ts() + f"{sensor.name} not supported by this device, skipping.", file=sys.stderr)
            continue
        await _write_command(client, ControlCommand.GET_MEASUREMENT_SETTINGS, sensor, quiet)
        _verbose(quiet, f"Requesting {sensor.name} with:\n{START_PRESETS[sensor].describe()}")
        await _write_command(client, ControlCommand.REQUEST_MEASUREMENT_START, sensor, quiet)
        started.append(sensor)
    return started


async def _stop_streams(client, sensors: list[MeasurementSensor], quiet: bool):
    for sensor in sensors:
        try:
            await _write_command(client, ControlCommand.STOP_MEASUREMENT, sensor, quiet)
        except Exception as e:
            # Link may already be gone; nothing left to stop
            logger.debug("STOP %s failed: %s", sensor.name, e)


async def _run(
    device_name: str | None,
    sensors: list[MeasurementSensor],
    with_hr: bool,
    sink: SampleSink,
    connect_timeout: float,
    reconnect_delay: float,
    max_reconnects: int,
    scan_retries: int,
    scan_retry_delay: float,
    quiet: bool,
):
    first_packets: set = set()

    def make_callback(notify_queue: queue.Queue, characteristic: Characteristic):
        def callback(sender, data):
            notify_queue.put_nowait((characteristic, bytes(data)))

        return callback

    async def drain_notify_queue(notify_queue: queue.Queue):
        loop = asyncio.get_running_loop()
        while True:
            characteristic, data = await loop.run_in_executor(None, notify_queue.get)
            if characteristic is None:
                return
            _handle_notification(characteristic, data, sink, sys.stderr, first_packets, quiet)

    async def stop_drain(notify_queue: queue.Queue, drain_task):
        if drain_task is None or drain_task.done():
            return
        # Sentinel goes behind anything already queued, so those packets still reach the sink
        notify_queue.put_nowait((None, None))
        await drain_task

    reconnect_count = 0
    while True:
        device = None
        if reconnect_count > 0:
            delay = FIRST_RECONNECT_DELAY if reconnect_count == 1 else reconnect_delay
            print(_ts() + f"Connection lost. Waiting {delay:.0f}s before reconnect (Bluetooth may need a moment after sleep)...", file=sys.stderr)
            _verbose(quiet, f"Reconnect attempt {reconnect_count} (max={'unlimited' if max_reconnects <= 0 else max_reconnects})")
            await asyncio.sleep(delay)
        for attempt in range(scan_retries):
            _verbose(quiet, f"Scan attempt {attempt + 1}/{scan_retries}")
            device = await _find_device(device_name, quiet)
            if device is not None:
                break
            if attempt < scan_retries - 1:
                _print_scan_tips(quiet)
                print(_ts() + f"Retrying scan in {scan_retry_delay:.0f}s ({attempt + 2}/{scan_retries})...", file=sys.stderr)
                await asyncio.sleep(scan_retry_delay)
        if device is None:
            _print_scan_tips(quiet)
            return 1

        print(_ts() + f"Connecting (timeout {connect_timeout:.0f}s)...", file=sys.stderr)
        _verbose(quiet, f"Connecting to {device.name} at {device.address}")
        # Fresh queue per connection
        notify_queue = queue.Queue()
        link_lost = asyncio.Event()
        started: list[MeasurementSensor] = []
        try:
            async with BleakClient(
                device,
                timeout=connect_timeout,
                disconnected_callback=lambda _client: link_lost.set(),
            ) as client:
                drain_task = asyncio.create_task(drain_notify_queue(notify_queue))
                try:
                    if _has_service(client, Characteristic.BATTERY_LEVEL):
                        battery = await client.read_gatt_char(Characteristic.BATTERY_LEVEL.uuid)
                        _handle_notification(Characteristic.BATTERY_LEVEL, bytes(battery), sink, sys.stderr, first_packets, quiet)
                    if with_hr:
                        if _has_service(client, Characteristic.HEART_RATE_MEASUREMENT):
                            await client.start_notify(
                                Characteristic.HEART_RATE_MEASUREMENT.uuid,
                                make_callback(notify_queue, Characteristic.HEART_RATE_MEASUREMENT),
                            )
                        else:
                            print(_ts() + "No Heart Rate service on this device; HR/RR disabled.", file=sys.stderr)
                    if sensors:
                        if _has_service(client, Characteristic.PMD_DATA):
                            await client.start_notify(
                                Characteristic.PMD_CONTROL_POINT.uuid,
                                make_callback(notify_queue, Characteristic.PMD_CONTROL_POINT),
                            )
                            await client.start_notify(
                                Characteristic.PMD_DATA.uuid, make_callback(notify_queue, Characteristic.PMD_DATA)
                            )
                            started = await _start_streams(client, sensors, quiet)
                        else:
                            print(_ts() + "No PMD service on this device; ECG/ACC disabled.", file=sys.stderr)
                    t = datetime.now().strftime("%H:%M:%S")
                    print(f"# connected {t}", flush=True)
                    print(_ts() + "Streaming (Ctrl+C to stop). Reconnects on drop.", file=sys.stderr)
                    connect_time = time.time()
                    no_data_msg_shown = False
                    while True:
                        await asyncio.sleep(LINK_CHECK_INTERVAL)
                        if link_lost.is_set() or not client.is_connected:
                            raise ConnectionError("BLE link dropped")
                        if not first_packets - {Characteristic.BATTERY_LEVEL.name} and (time.time() - connect_time) > 20 and not no_data_msg_shown:
                            no_data_msg_shown = True
                            print(
                                _ts() + "No packets yet. Strap on & moisten electrodes; try removing H10 from System Settings → Bluetooth and reconnect.",
                                file=sys.stderr,
                            )
                finally:
                    if client.is_connected:
                        await _stop_streams(client, started, quiet)
                    await stop_drain(notify_queue, drain_task)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            print(_ts() + f"Connection lost: {e}", file=sys.stderr)
            if not quiet:
                traceback.print_exc(file=sys.stderr)
            if reconnect_delay <= 0:
                print(_ts() + "Exiting (reconnect disabled).", file=sys.stderr)
                return 1
            reconnect_count += 1
            if max_reconnects > 0 and reconnect_count >= max_reconnects:
                print(_ts() + f"Max reconnects ({max_reconnects}) reached. Exiting.", file=sys.stderr)
                return 1
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Stream Polar H10 HR/RR, ECG and ACC")
    parser.add_argument("--device", "-d", type=str, default=None, help='Device name, e.g. "POLAR H10 0A3BA92B"')
    parser.add_argument(
        "--sensor", "-s",
        action="append",
        choices=sorted(SENSOR_CHOICES),
        default=None,
        help="PMD stream to start (repeatable). Default: ecg and acc.",
    )
    parser.add_argument("--no-pmd", action="store_true", help="Only stream HR/RR; do not start ECG/ACC")
    parser.add_argument("--no-hr", action="store_true", help="Do not subscribe to the Heart Rate Measurement characteristic")
    parser.add_argument(
        "--sink",
        choices=["json", "lsl"],
        default="json",
        help="json: JSON lines on stdout (default). lsl: LabStreamingLayer outlets.",
    )
    parser.add_argument(
        "--connect-timeout", "-t",
        type=float,
        default=90.0,
        help="BLE connection timeout in seconds (default 90). Increase if connection often times out.",
    )
    parser.add_argument(
        "--reconnect-delay", "-r",
        type=float,
        default=5.0,
        help="Seconds to wait before reconnecting after a drop (default 5). Use 0 to disable auto-reconnect.",
    )
    parser.add_argument(
        "--max-reconnects", "-m",
        type=int,
        default=0,
        help="Max auto-reconnect attempts after a drop (default 0 = unlimited).",
    )
    parser.add_argument(
        "--scan-retries",
        type=int,
        default=5,
        help="Number of scans to try if no H10 found (default 5).",
    )
    parser.add_argument(
        "--scan-retry-delay",
        type=float,
        default=15.0,
        help="Seconds to wait between scan retries (default 15).",
    )
    parser.add_argument(
        "-q", "--quiet",
        action="store_true",
        help="Quiet mode: less diagnostic logging (no scan counts, no tracebacks).",
    )
    parser.add_argument("--debug", action="store_true", help="Debug logging from the decoders on stderr")
    return parser


def selected_sensors(args: argparse.Namespace) -> list[MeasurementSensor]:
    if args.no_pmd:
        return []
    names = args.sensor or ["ecg", "acc"]
    # keep order, drop duplicates
    return [SENSOR_CHOICES[n] for n in dict.fromkeys(names)]


def main():
    args = build_parser().parse_args()
    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.WARNING,
        format="[%(asctime)s] %(name)s %(levelname)s: %(message)s",
        datefmt="%H:%M:%S",
        stream=sys.stderr,
    )
    sink: SampleSink = LslSink(args.device or "Polar H10") if args.sink == "lsl" else JsonLinesSink()
    try:
        exit(asyncio.run(_run(
            args.device, selected_sensors(args), not args.no_hr, sink,
            args.connect_timeout, args.reconnect_delay, args.max_reconnects,
            args.scan_retries, args.scan_retry_delay, args.quiet,
        )))
    except KeyboardInterrupt:
        print(_ts() + "Stopped.", file=sys.stderr)
        sys.exit(0)
    finally:
        sink.close()


if __name__ == "__main__":
    main()
