# ABOUTME: Rainbow favorability scoring from one weather snapshot and one sun position
# ABOUTME: Five weighted factors, an antisolar viewing direction and ordered recommendations

from models import (
    ConditionVerdict,
    RainbowAssessment,
    RainbowDirection,
    SunPosition,
    WeatherSnapshot,
)


# Rainbow formation thresholds
SUN_ALTITUDE_MIN = 0  # degrees
SUN_ALTITUDE_MAX = 42  # The bow sits 42 degrees from the antisolar point
HUMIDITY_MIN = 50  # %
CLOUD_COVER_MAX = 80  # %
VISIBILITY_MIN = 1000  # meters

# Thunderstorm, drizzle and rain ids, then snow ids
PRECIPITATION_CODE_RANGES = ((200, 531), (600, 622))

# Factor order is the order of conditions and corrective recommendations
FACTOR_WEIGHTS = {
    'sun_altitude': 30,
    'precipitation': 30,
    'humidity': 15,
    'cloud_cover': 15,
    'visibility': 10,
}
TOTAL_WEIGHT = sum(FACTOR_WEIGHTS.values())

FAVORABLE_SCORE = 60
EXCELLENT_SCORE = 80
SOME_FACTORS_SCORE = 40

CORRECTIVE_RECOMMENDATIONS = {
    'sun_altitude': (
        'Wait for sun to be lower in the sky (early morning or late afternoon).'
    ),
    'precipitation': 'Watch for rain showers with breaks in the clouds.',
    'humidity': 'Humidity is low - rainbows more likely after rain.',
    'cloud_cover': 'Wait for some clearing in the clouds.',
    'visibility': 'Poor visibility may obscure any rainbow.',
}

COMPASS_POINTS = [
    'N', 'NNE', 'NE', 'ENE', 'E', 'ESE', 'SE', 'SSE',
    'S', 'SSW', 'SW', 'WSW', 'W', 'WNW', 'NW', 'NNW',
]  # fmt: skip


def azimuth_to_cardinal(azimuth: float) -> str:
    """16-point compass label for a bearing in degrees"""
    index = int((azimuth + 11.25) // 22.5) % 16
    return COMPASS_POINTS[index]


def rainbow_direction(sun_azimuth: float | None) -> RainbowDirection | None:
    """Antisolar bearing, where the bow is centred; None when the sun is unknown"""
    if sun_azimuth is None:
        return None
    azimuth = round((sun_azimuth + 180) % 360, 1) % 360
    cardinal = azimuth_to_cardinal(azimuth)
    return RainbowDirection(
        azimuth=azimuth,
        cardinal=cardinal,
        description=f'Look {cardinal} (opposite the sun)',
    )


def has_recent_precipitation(snapshot: WeatherSnapshot | None) -> bool:
    """Missing rain/snow amounts count as none; the condition id still counts"""
    if snapshot is None:
        return False
    rain = snapshot.rain_1h or 0
    snow = snapshot.snow_1h or 0
    code = snapshot.weather_code
    in_precipitation_codes = code is not None and any(
        low <= code <= high for low, high in PRECIPITATION_CODE_RANGES
    )
    return rain > 0 or snow > 0 or in_precipitation_codes


def _format_number(value: float) -> str:
    return f'{value:g}'


class FavorabilityEvaluator:
    """Scores how likely a rainbow is for given weather and sun geometry

    Each factor yields a verdict with a human reason. Unknown values are never
    favorable; they carry an ``"<Factor> unknown"`` reason instead of failing.
    """

    def evaluate(
        self, snapshot: WeatherSnapshot | None, sun_position: SunPosition | None
    ) -> RainbowAssessment:
        altitude = sun_position.altitude if sun_position else None
        azimuth = sun_position.azimuth if sun_position else None

        conditions = {
            'sun_altitude': self._sun_altitude_verdict(altitude),
            'precipitation': self._precipitation_verdict(snapshot),
            'humidity': self._humidity_verdict(snapshot.humidity if snapshot else None),
            'cloud_cover': self._cloud_cover_verdict(
                snapshot.cloud_cover if snapshot else None
            ),
            'visibility': self._visibility_verdict(
                snapshot.visibility if snapshot else None
            ),
        }
        score = self.calculate_score(conditions)

        return RainbowAssessment(
            is_favorable=score >= FAVORABLE_SCORE,
            score=score,
            conditions=conditions,
            rainbow_direction=rainbow_direction(azimuth),
            sun_altitude=altitude,
            sun_azimuth=azimuth,
            recommendations=self.generate_recommendations(conditions, score),
        )

    def unavailable(self, status: str, message: str) -> RainbowAssessment:
        """Explicitly unavailable assessment, never a silent 'unfavorable'"""
        return RainbowAssessment(
            is_favorable=False,
            score=0,
            recommendations=[message],
            available=False,
            status=status,
            message=message,
        )

    def calculate_score(self, conditions: dict[str, ConditionVerdict]) -> int:
        favorable_weight = sum(
            weight
            for name, weight in FACTOR_WEIGHTS.items()
            if name in conditions and conditions[name].favorable
        )
        return round(100 * favorable_weight / TOTAL_WEIGHT)

    def generate_recommendations(
        self, conditions: dict[str, ConditionVerdict], score: int
    ) -> list[str]:
        if score >= EXCELLENT_SCORE:
            recommendations = ['Excellent rainbow conditions! Keep watching the sky.']
        elif score >= FAVORABLE_SCORE:
            recommendations = ['Good chance of seeing a rainbow.']
        elif score >= SOME_FACTORS_SCORE:
            recommendations = ['Some favorable conditions, but rainbow unlikely.']
        else:
            recommendations = ['Conditions not favorable for rainbows.']

        for name in FACTOR_WEIGHTS:
            verdict = conditions.get(name)
            if verdict is not None and not verdict.favorable:
                recommendations.append(CORRECTIVE_RECOMMENDATIONS[name])
        return recommendations

    def _sun_altitude_verdict(self, altitude: float | None) -> ConditionVerdict:
        if altitude is None:
            return ConditionVerdict(None, False, 'Sun altitude unknown')

        shown = round(altitude, 1)
        if altitude < SUN_ALTITUDE_MIN:
            reason = f'Sun is below horizon ({shown}°)'
        elif altitude > SUN_ALTITUDE_MAX:
            reason = f'Sun is too high ({shown}°) - rainbows form when sun is lower'
        else:
            reason = f'Sun altitude is optimal ({shown}°)'
        favorable = SUN_ALTITUDE_MIN <= altitude <= SUN_ALTITUDE_MAX
        return ConditionVerdict(shown, favorable, reason)

    def _precipitation_verdict(self, snapshot: WeatherSnapshot | None) -> ConditionVerdict:
        if has_recent_precipitation(snapshot):
            return ConditionVerdict(
                True, True, 'Recent precipitation detected - water droplets present'
            )
        return ConditionVerdict(
            False, False, 'No recent precipitation - rainbows need water droplets'
        )

    def _humidity_verdict(self, humidity: float | None) -> ConditionVerdict:
        if humidity is None:
            return ConditionVerdict(None, False, 'Humidity unknown')
        if humidity < HUMIDITY_MIN:
            reason = (
                f'Humidity too low ({_format_number(humidity)}%) - need moisture in the air'
            )
            return ConditionVerdict(humidity, False, reason)
        return ConditionVerdict(
            humidity, True, f'Humidity is sufficient ({_format_number(humidity)}%)'
        )

    def _cloud_cover_verdict(self, cloud_cover: float | None) -> ConditionVerdict:
        if cloud_cover is None:
            return ConditionVerdict(None, False, 'Cloud cover unknown')
        if cloud_cover > CLOUD_COVER_MAX:
            reason = (
                f'Too cloudy ({_format_number(cloud_cover)}%) '
                '- need some clear sky to see rainbow'
            )
            return ConditionVerdict(cloud_cover, False, reason)
        return ConditionVerdict(
            cloud_cover,
            True,
            f'Cloud cover is acceptable ({_format_number(cloud_cover)}%)',
        )

    def _visibility_verdict(self, visibility: float | None) -> ConditionVerdict:
        if visibility is None:
            return ConditionVerdict(None, False, 'Visibility unknown')
        if visibility < VISIBILITY_MIN:
            return ConditionVerdict(
                visibility, False, f'Visibility too low ({_format_number(visibility)}m)'
            )
        return ConditionVerdict(
            visibility, True, f'Visibility is good ({_format_number(visibility)}m)'
        )
