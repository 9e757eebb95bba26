#!/usr/bin/env python3
"""
rinex_nav.py -- Read and write RINEX 2 GPS navigation records.

Decodes the 8-line fixed-column GPS broadcast ephemeris record into a flat
NavigationRecord and encodes it back byte-for-byte.  Also resolves the GPS
week of the subframe 1 transmit time, which the record only stores as a
(possibly out of range) seconds-of-week value.

Dependencies: numpy, xarray

Usage:
  rinex_nav.py brdc0380.26n --dump
  rinex_nav.py brdc0380.26n --stable
  rinex_nav.py brdc0380.26n -o rewritten.26n
  rinex_nav.py brdc0380.26n.gz -o rewritten.26n --rinex-version 2.10
"""

import argparse
import contextlib
import gzip
import math
import os
import shutil
import sys
import tempfile
from typing import NamedTuple

import numpy as np
import xarray as xr


class FormatError(ValueError):
    """Malformed RINEX navigation text.

    Carries the 0-based line number within the source and the offending
    line, when known.
    """

    def __init__(self, message, line_number=None, line=None):
        self.line_number = line_number
        self.line = line
        if line_number is not None:
            message = f"line {line_number}: {message}"
        super().__init__(message)


@contextlib.contextmanager
def _open_rinex(filepath):
    """Yield a path to a plain RINEX file, decompressing .gz if needed."""
    if filepath.endswith('.gz'):
        with tempfile.NamedTemporaryFile(suffix='.rnx', delete=False) as tmp:
            tmp_path = tmp.name
        try:
            with gzip.open(filepath, 'rb') as f_in, open(tmp_path, 'wb') as f_out:
                shutil.copyfileobj(f_in, f_out)
            yield tmp_path
        finally:
            os.unlink(tmp_path)
    else:
        yield filepath


# ---- FORTRAN-style fixed-width floats ----

def format_fortran_float(value, length=18, exp_len=2):
    """Format a float as a FORTRAN D-notation field of exactly `length` chars.

    Layout is sign (' ' or '-'), '.', mantissa digits, 'D', exponent sign
    and exponent digits, e.g. ' .290000000000D+02' for 29.0 with the
    default 18/2 layout.  If the exponent needs more than `exp_len` digits,
    mantissa digits are dropped so the width does not change.
    """
    if not math.isfinite(value):
        raise ValueError(f"cannot format non-finite value {value!r}")

    digits = length - 4 - exp_len
    sign = '-' if value < 0 else ' '
    if value == 0:
        return f"{sign}.{'0' * digits}D+{'0' * exp_len}"

    while digits > 0:
        # d.ddddde+XX -> .dddddD+(XX+1)
        sci = f"{abs(value):.{digits - 1}e}"
        mantissa, exponent = sci.split('e')
        exponent = int(exponent) + 1
        exp_str = f"{abs(exponent):0{exp_len}d}"
        used = 4 + len(exp_str)
        if digits + used <= length:
            exp_sign = '-' if exponent < 0 else '+'
            return f"{sign}.{mantissa.replace('.', '')}D{exp_sign}{exp_str}"
        digits = length - used
    raise ValueError(f"{value!r} does not fit in {length} characters")


def parse_fortran_float(s):
    """Parse a FORTRAN-style float (D or E exponent, either case)."""
    s = s.strip()
    if not s:
        raise ValueError("blank numeric field")
    s = s.replace('D', 'E').replace('d', 'e')
    return float(s)


# ---- GPS time utilities ----

# GPS epoch: January 6, 1980 00:00:00 UTC
GPS_EPOCH = np.datetime64('1980-01-06T00:00:00', 'ns')
FULLWEEK = 604800
HALFWEEK = 302400
_NS_PER_SEC = 10**9

# MJD 0, used as the epoch of an empty record
BEGINNING_OF_TIME = np.datetime64('1858-11-17T00:00:00', 'ns')


class TaggedTime(NamedTuple):
    """An instant on a named time scale."""
    time: np.datetime64
    time_system: str = 'GPS'

    def shifted(self, seconds):
        """Return this instant moved by `seconds`, keeping the time scale."""
        delta = np.timedelta64(int(round(seconds * _NS_PER_SEC)), 'ns')
        return TaggedTime(self.time + delta, self.time_system)

    def week_sow(self):
        return datetime64_to_gps_week_sow(self.time)


def civil_to_datetime64(year, month, day, hour, minute, second):
    """Build a ns-resolution instant from civil date/time fields.

    `second` may carry a fraction but must lie in [0, 60).
    """
    if not 0 <= second < 60:
        raise ValueError(f"seconds out of range: {second}")
    base = np.datetime64(
        f'{year:04d}-{month:02d}-{day:02d}T{hour:02d}:{minute:02d}', 'ns')
    return base + np.timedelta64(int(round(second * _NS_PER_SEC)), 'ns')


def datetime64_to_gps_week_sow(dt64):
    """Convert datetime64 to (gps_week, seconds_of_week)."""
    total_ns = int((np.datetime64(dt64, 'ns') - GPS_EPOCH).astype(np.int64))
    week, rem_ns = divmod(total_ns, FULLWEEK * _NS_PER_SEC)
    return week, rem_ns / _NS_PER_SEC


def gps_week_sow_to_datetime64(week, sow):
    """Convert GPS week and seconds of week to datetime64[ns]."""
    total_ns = int(week) * FULLWEEK * _NS_PER_SEC + int(round(sow * _NS_PER_SEC))
    return GPS_EPOCH + np.timedelta64(total_ns, 'ns')


def gps_time(week, sow):
    """GPS-tagged instant for a GPS week and seconds of week."""
    return TaggedTime(gps_week_sow_to_datetime64(week, sow), 'GPS')


def normalize_sow(sow):
    """Fold an arbitrary seconds-of-week value into [0, FULLWEEK)."""
    folded = sow % FULLWEEK
    if folded >= FULLWEEK:
        # tiny negative inputs round up to FULLWEEK in float arithmetic
        folded -= FULLWEEK
    return folded


# ---- Navigation record ----

# Broadcast orbit lines 1-6 (record lines 2-7), four fields each at
# offsets 3, 22, 41, 60.
ORBIT_LINE_FIELDS = [
    ('iode', 'crs', 'dn', 'm0'),
    ('cuc', 'ecc', 'cus', 'sqrt_a'),
    ('toe', 'cic', 'omega0', 'cis'),
    ('i0', 'crc', 'w', 'omega_dot'),
    ('idot', 'code_flags', 'toe_week', 'l2p_flag'),
    ('accuracy', 'health', 'tgd', 'iodc'),
]

# Stored as integers; the text value is truncated toward zero.
INT_FIELDS = frozenset(['code_flags', 'toe_week', 'l2p_flag', 'health'])

RECORD_FIELDS = (
    'prn', 'epoch', 'af0', 'af1', 'af2',
    'iode', 'crs', 'dn', 'm0',
    'cuc', 'ecc', 'cus', 'sqrt_a',
    'toe', 'cic', 'omega0', 'cis',
    'i0', 'crc', 'w', 'omega_dot',
    'idot', 'code_flags', 'toe_week', 'l2p_flag',
    'accuracy', 'health', 'tgd', 'iodc',
    'xmit_time', 'fit_interval',
)

RECORD_LINES = 8
FIELD_WIDTH = 19
EPOCH_WIDTH = 22
DATA_OFFSETS = (3, 22, 41, 60)
CLOCK_OFFSETS = (22, 41, 60)
# Column preceding each of the six epoch sub-fields
EPOCH_SEPARATORS = (2, 5, 8, 11, 14, 17)
DEFAULT_VERSION = 2.1
# RINEX 2.10 introduced the fit interval in broadcast orbit 7
FIT_INTERVAL_VERSION = 2.1
ROLLOVER_YEAR = 80


class NavigationRecord:
    """One GPS broadcast ephemeris as stored in a RINEX 2 navigation file.

    All orbital values are SI (meters, seconds, radians).  `sqrt_a` is the
    square root of the semi-major axis.  `accuracy` is the user range
    accuracy in meters.  `xmit_time` is the subframe 1 transmit time exactly
    as written in the file; it may be negative or exceed one week, and is
    only normalized on read (see resolve_transmit_week).
    """

    def __init__(self):
        self.prn = 0
        self.epoch = TaggedTime(BEGINNING_OF_TIME, 'GPS')
        self.af0 = 0.0
        self.af1 = 0.0
        self.af2 = 0.0
        self.iode = 0.0
        self.crs = 0.0
        self.dn = 0.0
        self.m0 = 0.0
        self.cuc = 0.0
        self.ecc = 0.0
        self.cus = 0.0
        self.sqrt_a = 0.0
        self.toe = 0.0
        self.cic = 0.0
        self.omega0 = 0.0
        self.cis = 0.0
        self.i0 = 0.0
        self.crc = 0.0
        self.w = 0.0
        self.omega_dot = 0.0
        self.idot = 0.0
        self.code_flags = 0
        self.toe_week = 0
        self.l2p_flag = 0
        self.accuracy = 0.0
        self.health = 0
        self.tgd = 0.0
        self.iodc = 0.0
        self.xmit_time = 0.0
        self.fit_interval = 4.0

    def __eq__(self, other):
        if not isinstance(other, NavigationRecord):
            return NotImplemented
        return all(getattr(self, name) == getattr(other, name)
                   for name in RECORD_FIELDS)

    def __repr__(self):
        return (f"NavigationRecord(prn={self.prn}, epoch={self.epoch.time}, "
                f"iode={self.iode:g}, toe={self.toe:g}, xmit_time={self.xmit_time:g})")

    # Transmit time helpers

    def xmit_week_sow(self):
        return resolve_transmit_week(self)

    def xmit_time_tagged(self):
        """Resolved subframe 1 transmit time as a GPS-tagged instant."""
        week, sow = resolve_transmit_week(self)
        return gps_time(week, sow)

    def set_xmit_week(self, full_week):
        return assign_transmit_week(self, full_week)

    def set_xmit_time(self, full_week, sow):
        return set_transmit_time(self, full_week, sow)

    def toe_time(self):
        return gps_time(self.toe_week, self.toe)

    def toc_week_sow(self):
        return self.epoch.week_sow()

    # Diagnostics

    def stable_text(self):
        return stable_text(self)

    def dump(self, stream=None):
        dump(self, stream)

    def to_list(self):
        return to_ordered_fields(self)


# ---- Transmit week disambiguation ----

def resolve_transmit_week(record):
    """Return (week, sow) of the subframe 1 transmit time.

    A negative raw transmit time means the transmission happened in the
    week before the Toe week (footnote to table A4 of RINEX 2.11).
    Otherwise the Toe week is corrected by a half-week test against Toe.
    """
    if record.xmit_time < 0:
        sow = normalize_sow(record.xmit_time + FULLWEEK)
        return record.toe_week - 1, sow

    sow = normalize_sow(record.xmit_time)
    diff = record.toe - sow
    if diff < -HALFWEEK:
        return record.toe_week - 1, sow
    if diff > HALFWEEK:
        return record.toe_week + 1, sow
    return record.toe_week, sow


def assign_transmit_week(record, full_week):
    """Set the record's week so the transmit time falls in `full_week`.

    Inverse of resolve_transmit_week for non-negative transmit times: when
    Toe and the transmit time straddle a week boundary, the week label
    follows Toe and the transmit time is shifted by one week to stay
    relative to it.  A negative transmit time already encodes the
    one-week offset, so only the week label is set.
    """
    if record.xmit_time < 0:
        record.toe_week = full_week
        return record

    diff = record.toe - record.xmit_time
    if diff < -HALFWEEK:
        record.toe_week = full_week + 1
        record.xmit_time -= FULLWEEK
    elif diff > HALFWEEK:
        record.toe_week = full_week - 1
        record.xmit_time += FULLWEEK
    else:
        record.toe_week = full_week
    return record


def set_transmit_time(record, full_week, sow):
    """Store a transmit time given as full GPS week and seconds of week."""
    # the half-week test in assign_transmit_week reads the new value
    record.xmit_time = sow
    return assign_transmit_week(record, full_week)


# ---- Record decoding ----

def _numeric_field(line, start, line_number, name):
    text = line[start:start + FIELD_WIDTH]
    # Spare fields such as L2P or code flags are often left blank
    if not text.strip():
        return 0.0
    try:
        return parse_fortran_float(text)
    except ValueError as e:
        raise FormatError(f"bad {name} field at column {start}: {e}",
                          line_number, line) from e


def _store(record, name, value, line_number, line):
    if name in INT_FIELDS:
        try:
            value = int(value)
        except (ValueError, OverflowError) as e:
            raise FormatError(f"bad {name} value {value!r}: {e}",
                              line_number, line) from e
    setattr(record, name, value)


def _decode_prn_epoch(record, line, line_number):
    if len(line) < EPOCH_WIDTH:
        raise FormatError("PRN/epoch line too short", line_number, line)

    for col in EPOCH_SEPARATORS:
        if line[col] != ' ':
            raise FormatError("badly formatted line", line_number, line)

    try:
        prn = int(line[0:2])
        yr = int(line[2:5])
        mo = int(line[5:8])
        day = int(line[8:11])
        hr = int(line[11:14])
        mi = int(line[14:17])
        sec = float(line[17:22])
    except ValueError as e:
        raise FormatError(f"bad PRN/epoch field: {e}", line_number, line) from e

    # years 80-99 represent 1980-1999
    if yr < ROLLOVER_YEAR:
        yr += 100
    yr += 1900

    # Real files carry epochs like 'yy mm dd hh 59 60.0' surprisingly often
    ds = 0.0
    if sec >= 60.0:
        ds = sec
        sec = 0.0
    try:
        epoch = TaggedTime(civil_to_datetime64(yr, mo, day, hr, mi, sec), 'GPS')
    except ValueError as e:
        raise FormatError(f"bad epoch: {e}", line_number, line) from e
    if ds:
        epoch = epoch.shifted(ds)

    record.prn = prn
    record.epoch = epoch
    for name, start in zip(('af0', 'af1', 'af2'), CLOCK_OFFSETS):
        setattr(record, name, _numeric_field(line, start, line_number, name))


def decode_record(lines, version=DEFAULT_VERSION, line_number=0):
    """Decode one 8-line navigation record.

    Args:
        lines: the 8 text lines of the record (trailing newlines allowed)
        version: RINEX version of the file; the fit interval in the last
                 line is only read for 2.1 and later
        line_number: source line number of lines[0], for error messages

    Returns:
        NavigationRecord

    Raises:
        FormatError if any line is malformed.  No partial record escapes.
    """
    if len(lines) != RECORD_LINES:
        raise FormatError(f"expected {RECORD_LINES} lines, got {len(lines)}",
                          line_number)

    lines = [line.rstrip('\r\n') for line in lines]
    record = NavigationRecord()

    _decode_prn_epoch(record, lines[0], line_number)

    for i, names in enumerate(ORBIT_LINE_FIELDS, start=1):
        line = lines[i]
        for name, start in zip(names, DATA_OFFSETS):
            value = _numeric_field(line, start, line_number + i, name)
            _store(record, name, value, line_number + i, line)

    # Broadcast orbit 7.  The transmit time is kept exactly as written so
    # records round-trip even when it is out of the canonical range.
    last = lines[7]
    record.xmit_time = _numeric_field(last, DATA_OFFSETS[0],
                                      line_number + 7, 'xmit_time')
    if version >= FIT_INTERVAL_VERSION:
        fit_text = last[DATA_OFFSETS[1]:DATA_OFFSETS[1] + FIELD_WIDTH]
        if fit_text.strip():
            record.fit_interval = _numeric_field(last, DATA_OFFSETS[1],
                                                 line_number + 7, 'fit_interval')
    return record


# ---- Record encoding ----

def _field(value):
    return ' ' + format_fortran_float(float(value))


def _format_epoch(epoch):
    """Format an epoch as ' YY MM DD HH MM SS.S' (20 characters)."""
    dt = epoch.time.astype('datetime64[us]').item()
    sec = dt.second + dt.microsecond / 1e6
    return (f" {dt.year % 100:02d} {dt.month:2d} {dt.day:2d} "
            f"{dt.hour:2d} {dt.minute:2d}{sec:5.1f}")


def encode_record(record, version=DEFAULT_VERSION):
    """Encode a NavigationRecord as 8 fixed-column lines (no newlines).

    The fit interval is written to the last line only for version 2.1 and
    later.
    """
    try:
        lines = [f"{record.prn:2d}" + _format_epoch(record.epoch)
                 + ''.join(_field(getattr(record, name))
                           for name in ('af0', 'af1', 'af2'))]
        for names in ORBIT_LINE_FIELDS:
            lines.append('   ' + ''.join(_field(getattr(record, name))
                                         for name in names))
        last = '   ' + _field(record.xmit_time)
        if version >= FIT_INTERVAL_VERSION:
            last += _field(record.fit_interval)
        lines.append(last)
    except ValueError as e:
        raise FormatError(f"cannot encode PRN {record.prn}: {e}") from e
    return lines


# ---- Line cursor ----

class NavStreamContext(NamedTuple):
    """Position of a reader or writer within a RINEX navigation file."""
    version: float = DEFAULT_VERSION
    line_number: int = 0
    header_read: bool = False


def read_header(lines):
    """Read a RINEX 2 navigation header.

    Returns:
        (header_lines, ctx) where ctx points at the first record line
    """
    if not lines:
        raise FormatError("empty file", 0)

    first = lines[0].rstrip('\r\n')
    try:
        version = float(first[0:9])
    except ValueError as e:
        raise FormatError(f"bad RINEX version: {e}", 0, first) from e
    if int(version) != 2:
        raise FormatError(f"unsupported RINEX version {version}", 0, first)
    if first[20:21] not in ('N', 'n'):
        raise FormatError("not a GPS navigation file", 0, first)

    for i, line in enumerate(lines):
        if line[60:].strip() == 'END OF HEADER':
            header = [l.rstrip('\r\n') for l in lines[:i + 1]]
            return header, NavStreamContext(version, i + 1, True)
    raise FormatError("missing END OF HEADER", len(lines))


def read_record(lines, ctx):
    """Decode the 8 lines starting at ctx.line_number.

    Returns:
        (record, ctx) with ctx advanced past the record
    """
    start = ctx.line_number
    chunk = lines[start:start + RECORD_LINES]
    if len(chunk) < RECORD_LINES:
        raise FormatError("incomplete record", start)
    record = decode_record(chunk, ctx.version, start)
    return record, ctx._replace(line_number=start + RECORD_LINES)


def write_record(record, ctx):
    """Encode a record at the writer position.

    Returns:
        (lines, ctx) with ctx advanced past the record
    """
    lines = encode_record(record, ctx.version)
    return lines, ctx._replace(line_number=ctx.line_number + RECORD_LINES)


def iter_records(lines, ctx):
    """Yield every record from ctx onwards, skipping blank separator lines."""
    while ctx.line_number < len(lines):
        if not lines[ctx.line_number].strip():
            ctx = ctx._replace(line_number=ctx.line_number + 1)
            continue
        record, ctx = read_record(lines, ctx)
        yield record


def read_nav_file(filepath):
    """Read a RINEX 2 GPS navigation file.

    Returns:
        (header_lines, version, list of NavigationRecord)
    """
    with open(filepath, 'r') as f:
        all_lines = f.read().splitlines()
    header, ctx = read_header(all_lines)
    records = list(iter_records(all_lines, ctx))
    return header, ctx.version, records


def write_nav_file(filepath, header, records, version=DEFAULT_VERSION):
    """Write a header followed by the encoded records."""
    ctx = NavStreamContext(version, len(header), True)
    with open(filepath, 'w') as f:
        for line in header:
            f.write(line + '\n')
        for record in records:
            lines, ctx = write_record(record, ctx)
            for line in lines:
                f.write(line + '\n')
    return ctx


# ---- Diagnostics ----

def _calendar(tagged):
    dt = tagged.time.astype('datetime64[s]').item()
    return dt.strftime('%m/%d/%Y %H:%M:%S')


def stable_text(record):
    """One-line summary: PRN, Toe, Toc as week/sow, IODE and HOW time."""
    week, sow = record.epoch.week_sow()
    _, how_sow = resolve_transmit_week(record)
    return (f"PRN: {record.prn:2d}"
            f" TOE: {_calendar(record.toe_time())}"
            f" TOC: {week:4d} {sow:10.3g}"
            f" IODE: {int(record.iode):4d}"
            f" HOWtime: {how_sow:6g}")


def dump(record, stream=None):
    """Write a summary with Toe and Toc in calendar form."""
    if stream is None:
        stream = sys.stdout
    _, how_sow = resolve_transmit_week(record)
    stream.write(f"PRN: {record.prn:2d}"
                 f" TOE: {_calendar(record.toe_time())}"
                 f" TOC: {_calendar(record.epoch)}"
                 f" IODE: {int(record.iode):4d}"
                 f" HOWtime: {how_sow:6g}\n")


# Field order of to_ordered_fields()
ORDERED_FIELD_NAMES = [
    'prn', 'transmitSow', 'transmitWeek', 'codeFlags', 'accuracy', 'health',
    'l2pFlag', 'iodc', 'iode', 'toc', 'af0', 'af1', 'af2', 'tgd',
    'cuc', 'cus', 'crc', 'crs', 'cic', 'cis', 'toe', 'm0', 'dn', 'ecc',
    'sqrtA', 'omega0', 'i0', 'w', 'omegaDot', 'idot', 'fitIntervalHours',
]


def to_ordered_fields(record):
    """Flatten a record into a list of floats in ORDERED_FIELD_NAMES order."""
    week, sow = resolve_transmit_week(record)
    _, toc = record.epoch.week_sow()
    values = [
        record.prn, sow, week, record.code_flags, record.accuracy,
        record.health, record.l2p_flag, record.iodc, record.iode, toc,
        record.af0, record.af1, record.af2, record.tgd,
        record.cuc, record.cus, record.crc, record.crs, record.cic, record.cis,
        record.toe, record.m0, record.dn, record.ecc, record.sqrt_a,
        record.omega0, record.i0, record.w, record.omega_dot, record.idot,
        record.fit_interval,
    ]
    return [float(v) for v in values]


# ---- xarray export ----

# georinex names for the RINEX 2 GPS navigation fields
DATASET_FIELDS = [
    ('SVclockBias', 'af0'), ('SVclockDrift', 'af1'), ('SVclockDriftRate', 'af2'),
    ('IODE', 'iode'), ('Crs', 'crs'), ('DeltaN', 'dn'), ('M0', 'm0'),
    ('Cuc', 'cuc'), ('Eccentricity', 'ecc'), ('Cus', 'cus'), ('sqrtA', 'sqrt_a'),
    ('Toe', 'toe'), ('Cic', 'cic'), ('Omega0', 'omega0'), ('Cis', 'cis'),
    ('Io', 'i0'), ('Crc', 'crc'), ('omega', 'w'), ('OmegaDot', 'omega_dot'),
    ('IDOT', 'idot'), ('CodesL2', 'code_flags'), ('GPSWeek', 'toe_week'),
    ('L2Pflag', 'l2p_flag'),
    ('SVacc', 'accuracy'), ('health', 'health'), ('TGD', 'tgd'), ('IODC', 'iodc'),
    ('TransTime', 'xmit_time'), ('FitIntvl', 'fit_interval'),
]


def records_to_dataset(records):
    """Build a georinex-compatible (time x sv) Dataset from records.

    Returns None when there are no records.
    """
    if not records:
        return None

    sv_set = sorted(set(f'G{r.prn:02d}' for r in records))
    time_set = sorted(set(r.epoch.time for r in records))
    sv_idx = {sv: i for i, sv in enumerate(sv_set)}
    time_idx = {t: i for i, t in enumerate(time_set)}

    data_vars = {}
    for var, _ in DATASET_FIELDS:
        data_vars[var] = (['time', 'sv'],
                          np.full((len(time_set), len(sv_set)), np.nan))

    for r in records:
        si = sv_idx[f'G{r.prn:02d}']
        ti = time_idx[r.epoch.time]
        for var, name in DATASET_FIELDS:
            data_vars[var][1][ti, si] = float(getattr(r, name))

    return xr.Dataset(
        data_vars=data_vars,
        coords={'time': np.array(time_set), 'sv': np.array(sv_set)},
    )


# ---- CLI ----

def main(argv=None):
    parser = argparse.ArgumentParser(
        description='Read, dump and rewrite RINEX 2 GPS navigation files',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s brdc0380.26n --dump
  %(prog)s brdc0380.26n --stable
  %(prog)s brdc0380.26n -o rewritten.26n
  %(prog)s brdc0380.26n.gz -o rewritten.26n --rinex-version 2.10
        """,
    )

    parser.add_argument('input', nargs='+', help='RINEX 2 navigation file(s)')
    parser.add_argument('-o', '--output',
        help='Rewrite all records (with the first file\'s header) to this file')
    parser.add_argument('--rinex-version', type=float, metavar='VERSION',
        help='Version used when writing (default: version of the first input)')
    parser.add_argument('--dump', action='store_true',
        help='Print each record with Toe and Toc in calendar form')
    parser.add_argument('--stable', action='store_true',
        help='Print the one-line summary of each record')
    parser.add_argument('--verbose', '-v', action='store_true',
        help='Show per-record details')

    args = parser.parse_args(argv)

    all_records = []
    out_header = None
    out_version = args.rinex_version

    for input_file in args.input:
        with _open_rinex(input_file) as rinex_path:
            print(f"Loading {input_file}...", file=sys.stderr)
            try:
                header, version, records = read_nav_file(rinex_path)
            except (OSError, FormatError) as e:
                print(f"  Error: {e}", file=sys.stderr)
                continue

        ds = records_to_dataset(records)
        if ds is None:
            print("  No navigation records found, skipping.", file=sys.stderr)
            continue

        times = ds.coords['time'].values
        print(f"  RINEX version: {version:.2f}", file=sys.stderr)
        print(f"  Satellites: {len(ds.coords['sv'])}, epochs: {len(times)}",
              file=sys.stderr)
        print(f"  Time range: {times[0]} to {times[-1]}", file=sys.stderr)

        if out_header is None:
            out_header = header
            if out_version is None:
                out_version = version

        for record in records:
            if args.verbose:
                week, sow = resolve_transmit_week(record)
                print(f"  G{record.prn:02d} toe_week={record.toe_week} "
                      f"xmit={record.xmit_time:g} -> week {week} sow {sow:g}",
                      file=sys.stderr)
            if args.dump:
                record.dump(sys.stdout)
            if args.stable:
                print(record.stable_text())
        all_records.extend(records)

    if not all_records:
        print("No navigation records read.", file=sys.stderr)
        return 1

    if args.output:
        try:
            write_nav_file(args.output, out_header, all_records, out_version)
        except FormatError as e:
            print(f"Error: {e}", file=sys.stderr)
            return 1
        print(f"\nWrote {len(all_records)} records to {args.output}",
              file=sys.stderr)

    return 0


if __name__ == '__main__':
    sys.exit(main())
