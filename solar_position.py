# ABOUTME: Local astronomical calculator for solar altitude, azimuth and daily sun events
# ABOUTME: SunCalc formulation; no external API, deterministic for a location and instant

import math
from datetime import datetime, timedelta, timezone

from models import Location, SunPosition, ensure_utc


RAD = math.pi / 180
SECONDS_PER_DAY = 86400
J1970 = 2440588  # Julian day of the unix epoch
J2000 = 2451545  # Julian day of 2000-01-01 12:00 TT
J0 = 0.0009
OBLIQUITY = RAD * 23.4397  # Obliquity of the ecliptic

SUNRISE_ANGLE = -0.833  # Refraction plus solar disc radius
GOLDEN_HOUR_ANGLE = 6.0


class SolarPositionCalculator:
    """Solar position and sun event calculator

    Altitude and azimuth come out of the formulas in radians, with azimuth
    measured from south and positive towards west. ``compute`` converts them to
    degrees and turns the azimuth into a compass bearing (0 = north, 90 = east).
    Sun events are computed for the UTC calendar day containing the instant and
    handed back as absolute UTC datetimes; a sun that never crosses the event
    angle (polar day or night) yields ``None`` for that event.
    """

    def compute(self, location: Location, instant: datetime) -> SunPosition:
        """Compute the sun's position and the day's sun events"""
        utc_instant = ensure_utc(instant)
        altitude_rad, azimuth_rad = self._position(
            utc_instant, location.latitude, location.longitude
        )

        altitude_deg = math.degrees(altitude_rad)
        azimuth_deg = math.degrees(azimuth_rad)

        times = self._sun_times(
            self._day_reference(utc_instant), location.latitude, location.longitude
        )

        return SunPosition(
            altitude=altitude_deg,
            azimuth=self._to_compass(azimuth_deg),
            azimuth_raw=azimuth_deg,
            is_daytime=altitude_deg > 0,
            sunrise=times['sunrise'],
            sunset=times['sunset'],
            solar_noon=times['solar_noon'],
            golden_hour_start=times['golden_hour_start'],
            golden_hour_end=times['golden_hour_end'],
        )

    def compute_at(self, lat: float, lng: float, instant: datetime) -> SunPosition:
        """Convenience wrapper; raises InvalidLocationError for bad coordinates"""
        return self.compute(Location(lat, lng), instant)

    def _to_compass(self, azimuth_deg: float) -> float:
        """Convert a south-based azimuth to a compass bearing in [0, 360)"""
        compass = round((azimuth_deg + 180) % 360, 1)
        # 359.96 rounds up to 360.0
        return compass % 360

    def _day_reference(self, instant: datetime) -> datetime:
        return instant.replace(hour=12, minute=0, second=0, microsecond=0)

    def _to_days(self, instant: datetime) -> float:
        """Days since J2000 for an aware datetime"""
        julian = instant.timestamp() / SECONDS_PER_DAY - 0.5 + J1970
        return julian - J2000

    def _from_julian(self, julian: float) -> datetime:
        seconds = (julian + 0.5 - J1970) * SECONDS_PER_DAY
        return datetime(1970, 1, 1, tzinfo=timezone.utc) + timedelta(seconds=seconds)

    def _right_ascension(self, longitude: float, latitude: float) -> float:
        return math.atan2(
            math.sin(longitude) * math.cos(OBLIQUITY)
            - math.tan(latitude) * math.sin(OBLIQUITY),
            math.cos(longitude),
        )

    def _declination(self, longitude: float, latitude: float) -> float:
        return math.asin(
            math.sin(latitude) * math.cos(OBLIQUITY)
            + math.cos(latitude) * math.sin(OBLIQUITY) * math.sin(longitude)
        )

    def _sidereal_time(self, days: float, lw: float) -> float:
        return RAD * (280.16 + 360.9856235 * days) - lw

    def _solar_mean_anomaly(self, days: float) -> float:
        return RAD * (357.5291 + 0.98560028 * days)

    def _ecliptic_longitude(self, mean_anomaly: float) -> float:
        center = RAD * (
            1.9148 * math.sin(mean_anomaly)
            + 0.02 * math.sin(2 * mean_anomaly)
            + 0.0003 * math.sin(3 * mean_anomaly)
        )
        perihelion = RAD * 102.9372
        return mean_anomaly + center + perihelion + math.pi

    def _position(self, instant: datetime, lat: float, lon: float) -> tuple[float, float]:
        """Return (altitude, azimuth) in radians"""
        lw = RAD * -lon
        phi = RAD * lat
        days = self._to_days(instant)

        ecliptic = self._ecliptic_longitude(self._solar_mean_anomaly(days))
        declination = self._declination(ecliptic, 0)
        right_ascension = self._right_ascension(ecliptic, 0)
        hour_angle = self._sidereal_time(days, lw) - right_ascension

        azimuth = math.atan2(
            math.sin(hour_angle),
            math.cos(hour_angle) * math.sin(phi) - math.tan(declination) * math.cos(phi),
        )
        altitude = math.asin(
            math.sin(phi) * math.sin(declination)
            + math.cos(phi) * math.cos(declination) * math.cos(hour_angle)
        )
        return altitude, azimuth

    def _hour_angle(self, angle: float, phi: float, declination: float) -> float | None:
        """Hour angle at which the sun crosses ``angle``; None if it never does"""
        try:
            return math.acos(
                (math.sin(angle) - math.sin(phi) * math.sin(declination))
                / (math.cos(phi) * math.cos(declination))
            )
        except (ValueError, ZeroDivisionError):
            return None

    def _sun_times(
        self, reference: datetime, lat: float, lon: float
    ) -> dict[str, datetime | None]:
        """Sunrise, sunset, solar noon and golden hour around ``reference``"""
        lw = RAD * -lon
        phi = RAD * lat
        days = self._to_days(reference)

        cycle = round(days - J0 - lw / (2 * math.pi))
        approx_transit = J0 + lw / (2 * math.pi) + cycle
        mean_anomaly = self._solar_mean_anomaly(approx_transit)
        ecliptic = self._ecliptic_longitude(mean_anomaly)
        declination = self._declination(ecliptic, 0)

        def transit(ds: float) -> float:
            return J2000 + ds + 0.0053 * math.sin(mean_anomaly) - 0.0069 * math.sin(
                2 * ecliptic
            )

        julian_noon = transit(approx_transit)

        def crossing(angle_deg: float) -> tuple[datetime | None, datetime | None]:
            hour_angle = self._hour_angle(angle_deg * RAD, phi, declination)
            if hour_angle is None:
                return None, None
            julian_set = transit(J0 + (hour_angle + lw) / (2 * math.pi) + cycle)
            julian_rise = julian_noon - (julian_set - julian_noon)
            return self._from_julian(julian_rise), self._from_julian(julian_set)

        sunrise, sunset = crossing(SUNRISE_ANGLE)
        golden_hour_end, golden_hour_start = crossing(GOLDEN_HOUR_ANGLE)

        return {
            'sunrise': sunrise,
            'sunset': sunset,
            'solar_noon': self._from_julian(julian_noon),
            'golden_hour_start': golden_hour_start,
            'golden_hour_end': golden_hour_end,
        }
