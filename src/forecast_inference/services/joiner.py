"""Join model annotations onto authoritative forecast periods."""

from collections.abc import Sequence

from forecast_inference.api.schemas import JoinedPeriod, PeriodAnnotation
from forecast_inference.services.nws import ForecastPeriod


def join_periods(
    periods: Sequence[ForecastPeriod],
    annotations: Sequence[PeriodAnnotation],
) -> list[JoinedPeriod]:
    """Merge annotations onto periods by exact period name.

    Output follows the order of ``periods``. A period without a matching
    annotation is left out. When several annotations share a name, the
    first one in ``annotations`` is used.
    """
    by_name: dict[str, PeriodAnnotation] = {}
    for annotation in annotations:
        by_name.setdefault(annotation.name, annotation)

    joined = []
    for period in periods:
        annotation = by_name.get(period.name)
        if annotation is None:
            continue
        joined.append(
            JoinedPeriod(
                name=period.name,
                time_of_day=annotation.time_of_day,
                icon=annotation.icon,
                beaufort=annotation.beaufort,
                detailed_forecast=period.detailed_forecast,
                short_forecast=period.short_forecast,
                start_time=period.start_time,
                end_time=period.end_time,
                temperature=period.temperature,
                temperature_unit=period.temperature_unit,
                wind_speed=period.wind_speed,
                wind_direction=period.wind_direction,
                is_daytime=period.is_daytime,
            )
        )
    return joined
