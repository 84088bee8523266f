import logging
import os

import numpy as np
from pyulog import ULog

from .log import FlightLog, from_ulog

logger = logging.getLogger(__name__)


def export_log_csv(flog: FlightLog, output_dir: str):
    """Write each topic to <output_dir>/<topic>.csv, timestamps in microseconds."""
    os.makedirs(output_dir, exist_ok=True)
    paths = []
    for name, df in flog.topics.items():
        out = df.copy()
        out.insert(0, 'timestamp', np.round(df.index.total_seconds().to_numpy() * 1e6).astype(np.int64))
        csv_path = os.path.join(output_dir, f"{name}.csv")
        out.to_csv(csv_path, index=False)
        paths.append(csv_path)
    return paths


def convert_ulogs_to_csv(input_dir: str):
    """Export every .ulg in input_dir to input_dir/csv/<name>_csv/<topic>.csv."""
    output_base = os.path.join(input_dir, "csv")
    os.makedirs(output_base, exist_ok=True)

    converted = []
    for filename in sorted(os.listdir(input_dir)):
        if not filename.endswith(".ulg"):
            continue

        base_name = filename[:-4]
        ulog_path = os.path.join(input_dir, filename)
        output_dir = os.path.join(output_base, f"{base_name}_csv")

        export_log_csv(from_ulog(ULog(ulog_path), filename=ulog_path), output_dir)
        logger.info("Converted %s -> %s", filename, output_dir)
        converted.append(output_dir)
    return converted
