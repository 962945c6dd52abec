from elastic_dispatch.services.settings import (BULK_INSERT_SETTINGS,
                                               INDEX_SETTINGS,
                                               get_bulk_settings,
                                               get_health_thresholds,
                                               get_index_settings,
                                               get_snapshot_settings)


def test_getters_return_copies() -> None:
    index_settings = get_index_settings()
    index_settings["index"]["number_of_replicas"] = 5
    assert INDEX_SETTINGS["index"]["number_of_replicas"] == 0

    bulk_settings = get_bulk_settings()
    bulk_settings["batch_size"] = 1
    assert BULK_INSERT_SETTINGS["batch_size"] == 5000


def test_thresholds_are_ordered() -> None:
    thresholds = get_health_thresholds()
    assert thresholds["disk_warning_percent"] < thresholds["disk_critical_percent"]
    assert thresholds["heap_warning_percent"] < thresholds["heap_critical_percent"]


def test_snapshot_defaults() -> None:
    settings = get_snapshot_settings()
    assert settings["snapshot_name_prefix"] == "elastic_dispatch"
    assert settings["include_global_state"] is False
