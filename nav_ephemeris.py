#!/usr/bin/env python3
"""
nav_ephemeris.py -- GPS ephemeris models and RINEX navigation record adapters.

Two in-memory ephemeris representations used by orbit computation code:
  - EngEphemeris: legacy model grouping parameters by the subframe (1, 2, 3)
    that broadcasts them, each tagged with its own HOW time
  - GPSEphemeris: modern flattened model with GPS-tagged epochs and a
    validity window

and the conversions between them and rinex_nav.NavigationRecord.

Dependencies: numpy
"""

import math
from typing import NamedTuple

import numpy as np

from rinex_nav import (
    HALFWEEK, NavigationRecord, TaggedTime,
    gps_time, resolve_transmit_week, set_transmit_time,
)


class ConversionError(ValueError):
    """Ephemeris values that fail a model's internal consistency checks."""


# URA index to meters lookup (IS-GPS-200), upper bound of each index
URA_TABLE = [2.4, 3.4, 4.85, 6.85, 9.65, 13.65, 24, 48,
             96, 192, 384, 768, 1536, 3072, 6144, 6145]

# HOW time of subframes 2 and 3 relative to subframe 1
SUBFRAME_SPACING = 6


def ura_meters_to_index(ura_m):
    """Convert URA accuracy in meters to URA index (0-15)."""
    if np.isnan(ura_m):
        return 0
    for i, threshold in enumerate(URA_TABLE):
        if ura_m <= threshold:
            return i
    return 15


def ura_index_to_meters(ura_index):
    """Upper bound in meters of a URA index (0-15)."""
    return float(URA_TABLE[max(0, min(15, int(ura_index)))])


def fit_interval_hours(iodc, fit_flag):
    """Curve fit interval in hours from IODC and the subframe 2 fit flag.

    IS-GPS-200 table 20-XII.  Flag 0 always means 4 hours.
    """
    if fit_flag == 0:
        return 4
    iodc = int(iodc)
    if 240 <= iodc <= 247:
        return 8
    if 248 <= iodc <= 255 or iodc == 496:
        return 14
    if 497 <= iodc <= 503 or 1021 <= iodc <= 1023:
        return 26
    if 504 <= iodc <= 510:
        return 50
    if iodc == 511 or 752 <= iodc <= 756:
        return 74
    if iodc == 757:
        return 98
    return 6


def _adjust_week(week, sow, ref_sow):
    """Week of `sow` given the week of a nearby reference time of week."""
    diff = sow - ref_sow
    if diff < -HALFWEEK:
        return week + 1
    if diff > HALFWEEK:
        return week - 1
    return week


# ---- Legacy subframe-oriented model ----

class EngEphemeris:
    """Broadcast ephemeris grouped by subframe, in engineering units.

    Subframe 1 carries the clock model, health and week number; subframes
    2 and 3 carry the orbit.  Each subframe keeps its own TLM message, HOW
    time (seconds of week) and anti-spoof/alert flags.
    """

    def __init__(self):
        self.have_subframe = [False, False, False]
        self.tlm_message = [0, 0, 0]
        self.how_sow = [0.0, 0.0, 0.0]
        self.as_alert = [0, 0, 0]
        self.is_fic = True

        # Subframe 1
        self.prn = 0
        self.tracker = 0
        self.full_week = 0
        self.code_flags = 0
        self.accuracy_flag = 0
        self.accuracy = 0.0
        self.health = 0
        self.iodc = 0
        self.l2p_data = 0
        self.tgd = 0.0
        self.toc = 0.0
        self.af0 = 0.0
        self.af1 = 0.0
        self.af2 = 0.0

        # Subframe 2
        self.iode = 0
        self.crs = 0.0
        self.dn = 0.0
        self.m0 = 0.0
        self.cuc = 0.0
        self.ecc = 0.0
        self.cus = 0.0
        self.ahalf = 0.0
        self.toe = 0.0
        self.fit_int = 0

        # Subframe 3
        self.cic = 0.0
        self.omega0 = 0.0
        self.cis = 0.0
        self.i0 = 0.0
        self.crc = 0.0
        self.w = 0.0
        self.omega_dot = 0.0
        self.idot = 0.0

    def set_sf1(self, tlm, how, as_alert, full_week, code_flags, accuracy_flag,
                health, iodc, l2p_data, tgd, toc, af2, af1, af0, tracker, prn):
        """Load subframe 1.  `accuracy_flag` is a URA index, not meters."""
        self.tlm_message[0] = tlm
        self.how_sow[0] = how
        self.as_alert[0] = as_alert
        self.full_week = full_week
        self.code_flags = code_flags
        self.accuracy_flag = accuracy_flag
        self.accuracy = ura_index_to_meters(accuracy_flag)
        self.health = health
        self.iodc = iodc
        self.l2p_data = l2p_data
        self.tgd = tgd
        self.toc = toc
        self.af2 = af2
        self.af1 = af1
        self.af0 = af0
        self.tracker = tracker
        self.prn = prn
        self.have_subframe[0] = True
        return self

    def set_sf2(self, tlm, how, as_alert, iode, crs, dn, m0, cuc, ecc, cus,
                ahalf, toe, fit_int):
        self.tlm_message[1] = tlm
        self.how_sow[1] = how
        self.as_alert[1] = as_alert
        self.iode = iode
        self.crs = crs
        self.dn = dn
        self.m0 = m0
        self.cuc = cuc
        self.ecc = ecc
        self.cus = cus
        self.ahalf = ahalf
        self.toe = toe
        self.fit_int = fit_int
        self.have_subframe[1] = True
        return self

    def set_sf3(self, tlm, how, as_alert, cic, omega0, cis, i0, crc, w,
                omega_dot, idot):
        self.tlm_message[2] = tlm
        self.how_sow[2] = how
        self.as_alert[2] = as_alert
        self.cic = cic
        self.omega0 = omega0
        self.cis = cis
        self.i0 = i0
        self.crc = crc
        self.w = w
        self.omega_dot = omega_dot
        self.idot = idot
        self.have_subframe[2] = True
        return self

    def set_fic(self, flag):
        self.is_fic = flag
        return self

    def set_accuracy(self, meters):
        """Set URA in meters; the URA index follows."""
        self.accuracy = meters
        self.accuracy_flag = ura_meters_to_index(meters)
        return self

    def is_data_complete(self):
        return all(self.have_subframe)

    def _require(self, subframe):
        if not self.have_subframe[subframe - 1]:
            raise ConversionError(f"subframe {subframe} not loaded")

    def how_time(self, subframe):
        """HOW time (seconds of week) of subframe 1, 2 or 3."""
        if subframe not in (1, 2, 3):
            raise ValueError(f"subframe must be 1, 2 or 3, got {subframe}")
        self._require(subframe)
        return self.how_sow[subframe - 1]

    def transmit_time(self):
        """Subframe 1 transmit time as a GPS-tagged instant."""
        self._require(1)
        return gps_time(self.full_week, self.how_sow[0])

    def epoch_time(self):
        """Clock epoch (Toc), in the week nearest the subframe 1 HOW time."""
        self._require(1)
        week = _adjust_week(self.full_week, self.toc, self.how_sow[0])
        return gps_time(week, self.toc)

    def toe_time(self):
        self._require(1)
        self._require(2)
        week = _adjust_week(self.full_week, self.toe, self.how_sow[0])
        return gps_time(week, self.toe)

    def fit_interval(self):
        """Fit interval in hours."""
        self._require(1)
        self._require(2)
        return fit_interval_hours(self.iodc, self.fit_int)


# ---- Modern flattened model ----

class SatID(NamedTuple):
    """Satellite identifier."""
    id: int
    system: str = 'GPS'


class GPSEphemeris:
    """Flattened GPS LNAV ephemeris.

    Orbit and clock terms are stored directly; the validity window
    (begin_valid, end_valid) is derived by adjust_validity().  The fit
    interval flag depends on IODC, so iodc must be set before
    set_fit_interval_flag() is called.
    """

    def __init__(self):
        self.sat_id = None
        self.data_loaded = False
        self.ct_toe = None
        self.ct_toc = None

        # Clock model
        self.af0 = 0.0
        self.af1 = 0.0
        self.af2 = 0.0

        # Major orbit parameters
        self.m0 = 0.0
        self.dn = 0.0
        self.ecc = 0.0
        self.a = 0.0
        self.omega0 = 0.0
        self.i0 = 0.0
        self.w = 0.0
        self.omega_dot = 0.0
        self.idot = 0.0
        self.dndot = 0.0
        self.adot = 0.0

        # Harmonic perturbations
        self.cuc = 0.0
        self.cus = 0.0
        self.crc = 0.0
        self.crs = 0.0
        self.cic = 0.0
        self.cis = 0.0

        # GPS specific
        self.iodc = None
        self.iode = 0
        self.health = 0
        self.accuracy = 0.0
        self.tgd = 0.0
        self.how_time = 0.0
        self.transmit_time = None
        self.code_flags = 0
        self.l2p_data = 0
        self.fitint = 0.0
        self.fit_interval_flag = None
        self.fit_duration = None

        self.begin_valid = None
        self.end_valid = None

    def set_fit_interval_flag(self, hours):
        """Derive the fit flag from the fit interval in whole hours."""
        if self.iodc is None:
            raise ConversionError("IODC must be set before the fit interval flag")
        self.fit_interval_flag = 0 if hours <= 4 else 1
        self.fit_duration = fit_interval_hours(self.iodc, self.fit_interval_flag)
        return self

    def adjust_validity(self):
        """Set the validity window from transmit time, Toe and fit duration."""
        if not self.data_loaded:
            raise ConversionError("ephemeris data not loaded")
        if self.fit_duration is None:
            raise ConversionError("fit interval flag not set")
        if self.transmit_time is None or self.ct_toe is None:
            raise ConversionError("transmit time and Toe required")

        # A late-received ephemeris can leave begin_valid after end_valid
        self.begin_valid = self.transmit_time
        self.end_valid = self.ct_toe.shifted(self.fit_duration * 3600 / 2)
        return self

    def is_valid(self, t):
        """True if the instant `t` (TaggedTime) is within the validity window."""
        if self.begin_valid is None:
            return False
        return self.begin_valid.time <= t.time <= self.end_valid.time


# ---- Adapters ----

def to_legacy_model(record):
    """Convert a NavigationRecord to an EngEphemeris.

    Subframes 2 and 3 are given HOW times 6 and 12 seconds after the
    resolved subframe 1 transmit time.  RINEX has no TLM word, alert flag
    or tracker, so those are zero.  RINEX accuracy is in meters while
    set_sf1 expects a URA index, so the index is passed as 0 and the
    meters are set afterwards.
    """
    how1 = record.xmit_time_tagged()
    how2 = how1.shifted(SUBFRAME_SPACING)
    how3 = how2.shifted(SUBFRAME_SPACING)
    week1, sow1 = how1.week_sow()
    _, sow2 = how2.week_sow()
    _, sow3 = how3.week_sow()
    _, toc = record.epoch.week_sow()

    eph = EngEphemeris()
    eph.set_sf1(0, sow1, 0, week1, record.code_flags, 0, record.health,
                int(record.iodc), record.l2p_flag, record.tgd, toc,
                record.af2, record.af1, record.af0, 0, record.prn)
    eph.set_sf2(0, sow2, 0, int(record.iode), record.crs, record.dn,
                record.m0, record.cuc, record.ecc, record.cus, record.sqrt_a,
                record.toe, 1 if record.fit_interval > 4 else 0)
    eph.set_sf3(0, sow3, 0, record.cic, record.omega0, record.cis,
                record.i0, record.crc, record.w, record.omega_dot, record.idot)
    eph.set_fic(False)
    eph.set_accuracy(record.accuracy)
    return eph


def to_modern_model(record):
    """Convert a NavigationRecord to a GPSEphemeris.

    The semi-major axis is sqrt_a squared; dndot and adot do not exist in
    the legacy navigation message and are zero.  ct_toe comes from
    (toe_week, toe), not from the clock epoch.  iodc is assigned before
    the fit interval flag is derived.  ConversionError from
    adjust_validity() reaches the caller unchanged.
    """
    eph = GPSEphemeris()
    eph.sat_id = SatID(record.prn, 'GPS')
    eph.ct_toe = record.toe_time()
    eph.ct_toc = TaggedTime(record.epoch.time, 'GPS')

    eph.af0 = record.af0
    eph.af1 = record.af1
    eph.af2 = record.af2

    eph.m0 = record.m0
    eph.dn = record.dn
    eph.ecc = record.ecc
    eph.a = record.sqrt_a * record.sqrt_a
    eph.omega0 = record.omega0
    eph.i0 = record.i0
    eph.w = record.w
    eph.omega_dot = record.omega_dot
    eph.idot = record.idot
    eph.dndot = 0.0
    eph.adot = 0.0

    eph.cuc = record.cuc
    eph.cus = record.cus
    eph.crc = record.crc
    eph.crs = record.crs
    eph.cic = record.cic
    eph.cis = record.cis

    eph.data_loaded = True

    eph.iodc = record.iodc
    eph.iode = record.iode
    eph.health = record.health
    eph.accuracy = record.accuracy
    eph.tgd = record.tgd

    week, sow = resolve_transmit_week(record)
    eph.how_time = sow
    eph.transmit_time = gps_time(week, sow)

    eph.code_flags = record.code_flags
    eph.l2p_data = record.l2p_flag

    eph.fitint = record.fit_interval
    eph.set_fit_interval_flag(int(record.fit_interval))
    eph.adjust_validity()
    return eph


def from_legacy_model(eph):
    """Convert a complete EngEphemeris to a NavigationRecord."""
    if not eph.is_data_complete():
        missing = [i + 1 for i, have in enumerate(eph.have_subframe) if not have]
        raise ConversionError(f"incomplete ephemeris, missing subframes {missing}")

    record = NavigationRecord()
    record.epoch = eph.epoch_time()
    record.prn = eph.prn
    record.code_flags = eph.code_flags
    record.accuracy = eph.accuracy
    record.health = eph.health
    record.l2p_flag = eph.l2p_data
    record.iodc = float(eph.iodc)
    record.iode = float(eph.iode)

    record.af0 = eph.af0
    record.af1 = eph.af1
    record.af2 = eph.af2
    record.tgd = eph.tgd

    record.cuc = eph.cuc
    record.cus = eph.cus
    record.crc = eph.crc
    record.crs = eph.crs
    record.cic = eph.cic
    record.cis = eph.cis

    record.toe = eph.toe
    set_transmit_time(record, eph.full_week, eph.how_time(1))
    record.m0 = eph.m0
    record.dn = eph.dn
    record.ecc = eph.ecc
    record.sqrt_a = eph.ahalf
    record.omega0 = eph.omega0
    record.i0 = eph.i0
    record.w = eph.w
    record.omega_dot = eph.omega_dot
    record.idot = eph.idot
    record.fit_interval = float(eph.fit_interval())
    return record


def from_modern_model(eph):
    """Convert a loaded GPSEphemeris to a NavigationRecord."""
    if not eph.data_loaded:
        raise ConversionError("ephemeris data not loaded")
    if eph.transmit_time is None or eph.ct_toe is None or eph.ct_toc is None:
        raise ConversionError("ephemeris epochs not set")

    record = NavigationRecord()
    record.prn = eph.sat_id.id
    record.epoch = TaggedTime(eph.ct_toc.time, 'GPS')

    record.af0 = eph.af0
    record.af1 = eph.af1
    record.af2 = eph.af2
    record.tgd = eph.tgd

    record.m0 = eph.m0
    record.dn = eph.dn
    record.ecc = eph.ecc
    record.sqrt_a = math.sqrt(eph.a)
    record.omega0 = eph.omega0
    record.i0 = eph.i0
    record.w = eph.w
    record.omega_dot = eph.omega_dot
    record.idot = eph.idot

    record.cuc = eph.cuc
    record.cus = eph.cus
    record.crc = eph.crc
    record.crs = eph.crs
    record.cic = eph.cic
    record.cis = eph.cis

    record.iodc = float(eph.iodc)
    record.iode = float(eph.iode)
    record.health = eph.health
    record.accuracy = eph.accuracy
    record.code_flags = eph.code_flags
    record.l2p_flag = eph.l2p_data
    record.fit_interval = eph.fitint

    toe_week, record.toe = eph.ct_toe.week_sow()
    record.toe_week = toe_week
    week, sow = eph.transmit_time.week_sow()
    set_transmit_time(record, week, sow)
    return record
