"""Loading PX4 ulog files into per-topic DataFrames."""
import glob
import logging
import os
from dataclasses import dataclass, field
from typing import Dict, List, Union

import numpy as np
import pandas as pd
from pyulog import ULog

logger = logging.getLogger(__name__)


@dataclass
class FlightLog:
    """One flight: a time-indexed DataFrame per ulog topic plus metadata."""
    topics: Dict[str, pd.DataFrame]
    filename: str = ''
    identifier: str = ''
    group: str = ''
    info: Dict[str, object] = field(default_factory=dict)
    parameters: Dict[str, object] = field(default_factory=dict)

    def __getitem__(self, name: str) -> pd.DataFrame:
        return self.topics[name]

    def __contains__(self, name) -> bool:
        return name in self.topics

    def series(self):
        return iter(self.topics)

    def with_topics(self, topics: Dict[str, pd.DataFrame]) -> 'FlightLog':
        return FlightLog(topics=topics, filename=self.filename,
                         identifier=self.identifier, group=self.group,
                         info=dict(self.info), parameters=dict(self.parameters))


def as_groups(flogs):
    """Normalise a log, a group of logs or a list of groups to a list of groups.

    Returns the groups and the kind of input ('individual', 'group' or
    'groups') so results can be given back in the same shape.
    """
    if isinstance(flogs, FlightLog):
        return [[flogs]], 'individual'
    flogs = list(flogs)
    if not flogs or isinstance(flogs[0], FlightLog):
        return [flogs], 'group'
    return [list(g) for g in flogs], 'groups'


def restore_shape(groups, kind):
    if kind == 'individual':
        return groups[0][0]
    if kind == 'group':
        return groups[0]
    return groups


def topic_frame(data: dict, bool_fields=()) -> pd.DataFrame:
    """Build a topic DataFrame from a pyulog data dict (timestamps in us)."""
    data = dict(data)
    timestamp = np.asarray(data.pop('timestamp'), dtype=np.int64)
    df = pd.DataFrame(data)
    for name in bool_fields:
        if name in df.columns:
            df[name] = df[name].astype(bool)
    df.index = pd.TimedeltaIndex(pd.to_timedelta(timestamp, unit='us'), name='timestamp')
    return df


def from_ulog(ulog: ULog, filename: str = '') -> FlightLog:
    topics = {}
    for dataset in ulog.data_list:
        # only the first instance of multi-instance topics
        if dataset.multi_id != 0:
            continue
        bool_fields = [f.field_name for f in dataset.field_data if f.type_str == 'bool']
        topics[dataset.name] = topic_frame(dataset.data, bool_fields)
    return FlightLog(topics=topics, filename=filename,
                     info=dict(ulog.msg_info_dict),
                     parameters=dict(ulog.initial_parameters))


def load_log(file_in: str, dir_in: str = 'logs') -> FlightLog:
    path = os.path.join(dir_in, file_in)
    if not os.path.isfile(path):
        raise FileNotFoundError(f"Log file {path} does not exist")
    return from_ulog(ULog(path), filename=path)


def latest_log_path(dir_in: str = 'logs') -> str:
    """Path of the most recent flight: last dated folder, last file within it.

    Flights performed without GPS or a MAVLink connection may carry wrong
    dates and sort out of order.
    """
    folders = sorted(d for d in os.listdir(dir_in)
                     if os.path.isdir(os.path.join(dir_in, d))) if os.path.isdir(dir_in) else []
    if not folders:
        raise FileNotFoundError(f"No log folders found in {dir_in}")
    files = sorted(glob.glob(os.path.join(dir_in, folders[-1], '*.ulg')))
    if not files:
        raise FileNotFoundError(f"No .ulg files found in {os.path.join(dir_in, folders[-1])}")
    return files[-1]


def load_latest_log(dir_in: str = 'logs') -> FlightLog:
    path = latest_log_path(dir_in)
    return load_log(os.path.relpath(path, dir_in), dir_in)


def file_identifiers(names: List[str], file_tag: str) -> List[str]:
    """Identifiers for files named <DATE>_<LEAD>_<TAG>_<ID>.ulg.

    The identifier is whatever follows the tag, without underscores or the
    extension. A two-digit suffix (_01, _02, ...) follows the chronological
    order of files sharing an identifier, which is the alphabetical order of
    their names given the YYYY-MM-DD_HH-MM-SS date prefix.
    """
    bases = []
    for name in names:
        tail = name.split(file_tag, 1)[1] if file_tag in name else name
        bases.append(tail.replace('_', '').replace('.ulg', ''))

    identifiers = list(bases)
    for base in set(bases):
        members = sorted((names[i], i) for i, b in enumerate(bases) if b == base)
        for rank, (_, i) in enumerate(members, start=1):
            identifiers[i] = f"{base}_{rank:02d}"
    return identifiers


def _load_tag(file_tag: str, dir_in: str) -> List[FlightLog]:
    paths = sorted(glob.glob(os.path.join(dir_in, '**', f'*{file_tag}*.ulg'), recursive=True))
    if not paths:
        logger.warning("No files matching tag %s in %s", file_tag, dir_in)
        return []

    flogs = []
    for jj, path in enumerate(paths, start=1):
        logger.info("  > Loading file [%d/%d] %s", jj, len(paths), path)
        flogs.append(load_log(os.path.relpath(path, dir_in), dir_in))

    names = [os.path.basename(p) for p in paths]
    for flog, identifier in zip(flogs, file_identifiers(names, file_tag)):
        flog.identifier = identifier
        flog.group = file_tag

    return sorted(flogs, key=lambda f: f.identifier)


def load_log_group(file_tag: Union[str, List[str]], save_file: str = None,
                   dir_in: str = 'logs'):
    """Load every log under dir_in whose name contains file_tag.

    A single tag gives a list of logs (a group); a list of tags gives a list
    of groups. Logs within a group are sorted by identifier.
    """
    tags = [file_tag] if isinstance(file_tag, str) else list(file_tag)

    groups = []
    for ii, tag in enumerate(tags, start=1):
        logger.info("Loading files matching tag %s (%d/%d)", tag, ii, len(tags))
        groups.append(_load_tag(tag, dir_in))

    flogs = groups[0] if len(tags) == 1 else groups
    if save_file:
        pd.to_pickle(flogs, save_file)
        logger.info("Saved loaded logs to %s", save_file)
    return flogs


def load_saved_group(path: str):
    return pd.read_pickle(path)
