#!/usr/bin/env python3

"""CLI tool to list serial ports and run a terminal session on one"""

import argparse
import logging
import re
import sys
import threading

import ok_logging_setup

import serial_session

ok_logging_setup.skip_traceback_for(serial_session.SerialScanException)

EOL_BYTES = {"none": b"", "lf": b"\n", "crlf": b"\r\n"}


def main():
    args = parse_args()
    level = "warning" if args.command == "list" and args.name else "info"
    ok_logging_setup.install({"OK_LOGGING_LEVEL": level})

    if args.command == "list":
        found = serial_session.scan_serial_ports()
        if not found:
            ok_logging_setup.exit("❌ No serial ports found")
        for port in found:
            print(port.name if args.name else format_port(port))

    if args.command == "term":
        run_terminal(config_from_args(args), mode=args.mode, eol=args.eol)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Talk to a serial port.")
    subparsers = parser.add_subparsers(title="actions", dest="command")
    list_parser = subparsers.add_parser("list", help="List known serial ports")
    list_parser.add_argument(
        "--name", "-n", action="store_true", help="print device file only"
    )

    term_parser = subparsers.add_parser("term", help="Terminal session")
    term_parser.add_argument("port", help="device to open")
    term_parser.add_argument(
        "baud", nargs="?", type=int, default=115200, help="baud rate"
    )
    term_parser.add_argument(
        "--data-bits", type=int, choices=(5, 6, 7, 8), default=8
    )
    term_parser.add_argument(
        "--parity", choices=("none", "even", "odd"), default="none"
    )
    term_parser.add_argument("--stop-bits", type=int, choices=(1, 2), default=1)
    term_parser.add_argument(
        "--flow-control",
        choices=("none", "hardware", "software"),
        default="none",
    )
    term_parser.add_argument(
        "--mode",
        choices=("raw", "text"),
        default="text",
        help="show and type bytes as hex pairs (raw) or UTF-8 (text)",
    )
    term_parser.add_argument(
        "--eol",
        choices=tuple(EOL_BYTES),
        default="lf",
        help="line ending appended to each typed line in text mode",
    )

    args = parser.parse_args(argv)
    if not args.command:
        args = parser.parse_args(["list"])
    return args


def config_from_args(
    args: argparse.Namespace,
) -> serial_session.ConnectionConfig:
    return serial_session.ConnectionConfig(
        port=args.port,
        baud=args.baud,
        data_bits=args.data_bits,
        parity=args.parity,
        stop_bits=args.stop_bits,
        flow_control=args.flow_control,
    )


def format_port(port: serial_session.SerialPort) -> str:
    words = [port.name]
    for k in "subsystem vid pid serial_number description".split():
        if v := port.attr.get(k, ""):
            words.append(repr(v) if re.search(r"""[\s"'\\]""", v) else v)
    return " ".join(words)


def run_terminal(
    config: serial_session.ConnectionConfig,
    mode: serial_session.DisplayMode,
    eol: str,
):
    notes = serial_session.NotificationQueue()
    with serial_session.SerialRuntime(notes) as runtime:
        logging.info("🔌 %s", serial_session.describe_config(config))
        runtime.open(config)

        end_of_input = threading.Event()
        typing_thread = threading.Thread(
            target=_forward_stdin,
            args=(runtime, mode, EOL_BYTES[eol], end_of_input),
            name="stdin",
            daemon=True,
        )
        typing_thread.start()

        try:
            while runtime.running and not end_of_input.is_set():
                if note := notes.get(timeout=0.2):
                    show_notification(note, mode)
        except KeyboardInterrupt:
            logging.info("⛔ Interrupted")

        runtime.shutdown()
        for note in notes.get_all():
            show_notification(note, mode)


def show_notification(
    note: serial_session.Notification, mode: serial_session.DisplayMode
):
    if isinstance(note, serial_session.Error):
        logging.warning("⚠️ %s", note.message)
    elif note.direction == "out":
        logging.info("📤 %s", serial_session.format_bytes(note.data, mode))
    else:
        text = serial_session.format_bytes(note.data, mode)
        sys.stdout.write(text + " " if mode == "raw" else text)
        sys.stdout.flush()


def _forward_stdin(
    runtime: serial_session.SerialRuntime,
    mode: serial_session.DisplayMode,
    eol: bytes,
    end_of_input: threading.Event,
):
    for line in sys.stdin:
        try:
            data = serial_session.parse_input(line.rstrip("\r\n"), mode)
        except serial_session.SerialInputInvalid as exc:
            logging.warning("⚠️ %s", exc)
            continue
        try:
            runtime.write(data + eol if mode == "text" else data)
        except serial_session.CommandQueueClosed:
            return
    logging.info("🏁 End of input")
    end_of_input.set()


if __name__ == "__main__":
    main()
