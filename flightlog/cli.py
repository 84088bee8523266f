import argparse
import logging
import os
import sys

from .compare import compare_flights, compare_groups
from .config import load_config, signal
from .crop import crop_log, crop_log_group
from .export import export_log_csv
from .importer import import_logs
from .log import latest_log_path, load_log, load_log_group
from .metrics import calculate_hover_metrics
from .plots import compare_position_sensors, flight_overview, save_figures
from .report import generate_flight_report


def parse_args(argv=None):
    p = argparse.ArgumentParser(
        prog="flightlog",
        description="Import, crop, plot and compute hover metrics for PX4 ulog files."
    )
    p.add_argument("--config", type=str, help="YAML file overriding the default settings")
    p.add_argument("--log-dir", type=str, help="Root directory holding the dated log folders")
    p.add_argument("--log-level", type=str, help="Logging level (DEBUG, INFO, WARNING, ...)")
    sub = p.add_subparsers(dest="command", required=True)

    imp = sub.add_parser("import", help="Copy new logs from an SD card")
    imp.add_argument("drive", type=str, help="Mount point of the SD card")
    imp.add_argument("--timezone", type=str, help="Timezone used to date the logs")

    ov = sub.add_parser("overview", help="Plot every important signal of a flight")
    ov.add_argument("file", nargs="?", help="Log path relative to the log directory; latest log by default")
    ov.add_argument("--output-dir", type=str, default="figures", help="Where PNGs are saved")
    ov.add_argument("--sensors", action="store_true", help="Also compare position sensors")

    rep = sub.add_parser("report", help="Generate a PDF flight report")
    rep.add_argument("file", nargs="?", help="Log path relative to the log directory; latest log by default")
    rep.add_argument("--out-dir", type=str, help="Where the PDF is saved")

    for name, help_text in [("metrics", "Hover metrics for groups of logs"),
                            ("compare", "Plot hover metrics of groups of logs")]:
        cmd = sub.add_parser(name, help=help_text)
        cmd.add_argument("tags", nargs="+", help="Filename tag selecting each group")
        cmd.add_argument("--flight-len", type=float, help="Seconds analysed before offboard ends")
        cmd.add_argument("--dt", type=float, help="Resampling step in seconds")
        if name == "metrics":
            cmd.add_argument("--output", type=str, help="CSV file to write the metrics to")
        else:
            cmd.add_argument("--x-vals", type=float, nargs="+", help="One x value per identifier")
            cmd.add_argument("--x-label", type=str, default="", help="x-axis description")
            cmd.add_argument("--legend", type=str, nargs="+", help="Legend entry per group")
            cmd.add_argument("--flights", action="store_true", help="Also overlay the cropped flights")
            cmd.add_argument("--output-dir", type=str, default="figures", help="Where PNGs are saved")

    exp = sub.add_parser("export", help="Write the topics of a log to CSV files")
    exp.add_argument("file", type=str, help="Log path relative to the log directory")
    exp.add_argument("--output-dir", type=str, help="Defaults to <log name>_csv next to the log")
    exp.add_argument("--crop", action="store_true", help="Crop (and resample with --dt) first")
    exp.add_argument("--flight-len", type=float, help="Seconds kept before offboard ends")
    exp.add_argument("--dt", type=float, help="Resampling step in seconds")
    return p.parse_args(argv)


def _setting(args, config, name):
    value = getattr(args, name, None)
    return config[name] if value is None else value


def run(args, config):
    log_dir = config["log_dir"]
    mode_signal = signal(config)

    if args.command == "import":
        copied = import_logs(args.drive, log_dir, _setting(args, config, "timezone"))
        for path in copied:
            print(path)

    elif args.command == "overview":
        path = args.file or os.path.relpath(latest_log_path(log_dir), log_dir)
        flog = load_log(path, log_dir)
        figs = flight_overview(flog)
        if args.sensors:
            figs += compare_position_sensors(flog)
        for out in save_figures(figs, args.output_dir):
            print(out)

    elif args.command == "report":
        print(generate_flight_report(args.file, log_dir, args.out_dir or config["report_dir"]))

    elif args.command in ("metrics", "compare"):
        flight_len = _setting(args, config, "flight_len")
        dt = _setting(args, config, "dt")
        flogs = load_log_group(args.tags, dir_in=log_dir)
        if args.command == "metrics":
            metrics = calculate_hover_metrics(flogs, flight_len, dt, mode_signal)
            print(metrics.to_string(index=False))
            if args.output:
                metrics.to_csv(args.output, index=False)
                print(f"Saved metrics to: {args.output}")
        else:
            metrics, figs = compare_groups(flogs, args.x_vals, args.x_label, args.legend,
                                           flight_len, dt, mode_signal)
            if args.flights:
                figs += compare_flights(crop_log_group(flogs, flight_len, dt, mode_signal))
            print(metrics.to_string(index=False))
            for out in save_figures(figs, args.output_dir):
                print(out)

    elif args.command == "export":
        flog = load_log(args.file, log_dir)
        if args.crop:
            flog = crop_log(flog, _setting(args, config, "flight_len"),
                            _setting(args, config, "dt"), mode_signal)
        output_dir = args.output_dir or os.path.join(
            log_dir, os.path.splitext(args.file)[0] + "_csv")
        paths = export_log_csv(flog, output_dir)
        print(f"Exported {len(paths)} topics to {output_dir}")


def main(argv=None):
    args = parse_args(argv)
    try:
        config = load_config(args.config)
        if args.log_dir:
            config["log_dir"] = args.log_dir
        if args.log_level:
            config["log_level"] = args.log_level
        logging.basicConfig(level=config["log_level"].upper(),
                            format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
                            datefmt="%H:%M:%S")
        run(args, config)
    except (FileNotFoundError, KeyError, ValueError, RuntimeError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
