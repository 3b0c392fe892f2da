"""Advertisement-to-profile matching logic."""

from __future__ import annotations

from collections.abc import Iterable

from netcfgctl.core.model import AdvertisementReport, MatchRules


def _name_contains_match(device_name: str | None, rules: MatchRules) -> bool:
    if not device_name:
        return False
    lower_name = device_name.lower()
    return any(token.lower() in lower_name for token in rules.name_contains)


def _data_marker_match(blobs: Iterable[bytes], rules: MatchRules) -> bool:
    return any(marker in blob for blob in blobs for marker in rules.data_markers if marker)


def report_matches(report: AdvertisementReport, rules: MatchRules) -> bool:
    if _name_contains_match(report.name, rules):
        return True
    if _data_marker_match(report.manufacturer_data.values(), rules):
        return True
    return _data_marker_match(report.service_data.values(), rules)
