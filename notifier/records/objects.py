"""Static metadata of the shared object types interpretations attach to."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class ObjectInfo:
    """
    Mapping between an interpretation type and its shared object.

    Args:
        type: Interpretation type value reported by the source.
        field: Payload field holding the nested object.
        api_model: API collection name of the object.
        object_path: App path of the object, formatted with ``id``.
        interpretation_path: App path of one interpretation, formatted with
            ``id`` and ``interpretation_id``.
    """

    type: str
    field: str
    api_model: str
    object_path: str
    interpretation_path: str


OBJECTS_INFO: tuple[ObjectInfo, ...] = (
    ObjectInfo(
        type="MAP",
        field="map",
        api_model="maps",
        object_path="dhis-web-maps/index.html?id={id}",
        interpretation_path=(
            "dhis-web-maps/index.html?id={id}&interpretationid={interpretation_id}"
        ),
    ),
    ObjectInfo(
        type="REPORT_TABLE",
        field="reportTable",
        api_model="reportTables",
        object_path="dhis-web-pivot/index.html?id={id}",
        interpretation_path=(
            "dhis-web-pivot/index.html?id={id}&interpretationid={interpretation_id}"
        ),
    ),
    ObjectInfo(
        type="CHART",
        field="chart",
        api_model="charts",
        object_path="dhis-web-data-visualizer/index.html/#/{id}",
        interpretation_path=(
            "dhis-web-data-visualizer/index.html/#/{id}"
            "/interpretation/{interpretation_id}"
        ),
    ),
    ObjectInfo(
        type="EVENT_REPORT",
        field="eventReport",
        api_model="eventReports",
        object_path="dhis-web-event-reports/index.html?id={id}",
        interpretation_path=(
            "dhis-web-event-reports/index.html?id={id}"
            "&interpretationid={interpretation_id}"
        ),
    ),
    ObjectInfo(
        type="EVENT_CHART",
        field="eventChart",
        api_model="eventCharts",
        object_path="dhis-web-event-visualizer/index.html?id={id}",
        interpretation_path=(
            "dhis-web-event-visualizer/index.html?id={id}"
            "&interpretationid={interpretation_id}"
        ),
    ),
)

OBJECTS_INFO_BY_TYPE = {info.type: info for info in OBJECTS_INFO}


def get_object_info(object_type: str | None) -> ObjectInfo | None:
    """
    Look up object metadata for an interpretation type.

    Args:
        object_type: Interpretation type value.

    Returns:
        Matching metadata or None for unknown types.
    """
    if not object_type:
        return None
    return OBJECTS_INFO_BY_TYPE.get(object_type)
