"""Template filters for durations and money."""

from django import template

from apps.core.months import format_duration, format_minutes

register = template.Library()


@register.filter
def hm(minutes):
    """545 -> "9:05"."""
    return format_minutes(minutes or 0)


@register.filter
def hours_minutes(minutes):
    """545 -> "9h 5m"."""
    return format_duration(minutes or 0)
