from splose_adapter.models import RawAppointment, RawAppointmentList
from splose_adapter.normalize import normalize_appointments, parse_timestamp


def _raw(**fields):
    return RawAppointment.model_validate(fields)


def test_sorted_by_start_ascending():
    appts = normalize_appointments([
        _raw(id=1, start="2024-03-05T10:00Z"),
        _raw(id=2, start="2024-03-01T09:00Z"),
    ])
    assert [a.start[:10] for a in appts] == ["2024-03-01", "2024-03-05"]


def test_sort_compares_instants_not_strings():
    appts = normalize_appointments([
        _raw(id="a", start="2024-03-01T10:00:00+10:00"),  # 00:00Z
        _raw(id="b", start="2024-03-01T01:00:00Z"),
    ])
    assert [a.id for a in appts] == ["a", "b"]


def test_equal_starts_keep_input_order():
    appts = normalize_appointments([
        _raw(id=i, start="2024-03-01T09:00:00.000Z") for i in (3, 1, 2)
    ])
    assert [a.id for a in appts] == [3, 1, 2]


def test_empty_patient_list_gives_null_status_fields():
    appt, = normalize_appointments([_raw(id=1, start="2024-03-01T09:00Z", appointmentPatients=[])])
    assert appt.status is None
    assert appt.cancellation_reason is None
    assert appt.cancellation_rate is None


def test_status_fields_come_from_first_patient_entry():
    appt, = normalize_appointments([_raw(
        id=1,
        start="2024-03-01T09:00Z",
        appointmentPatients=[
            {"status": "Cancelled", "cancellationReason": "Sick", "cancellationRate": 50},
            {"status": "Confirmed"},
        ],
    )])
    assert appt.status == "Cancelled"
    assert appt.cancellation_reason == "Sick"
    assert appt.cancellation_rate == 50


def test_defaults_for_missing_fields():
    appt, = normalize_appointments([_raw(id=1, start="2024-03-01T09:00Z")])
    assert appt.note == ""
    assert appt.location is None
    assert appt.practitioner is None
    assert appt.is_unavailable_block is False


def test_camel_case_output_shape(appointments_payload):
    raw = RawAppointmentList.model_validate(appointments_payload).data
    first = normalize_appointments(raw)[0].model_dump(mode="json", by_alias=True)
    assert set(first) == {
        "id", "start", "end", "isUnavailableBlock", "pricing", "total", "status",
        "cancellationReason", "cancellationRate", "note", "location", "practitioner",
    }
    assert first["id"] == 9101


def test_bad_timestamps_are_kept_after_dated_records():
    appts = normalize_appointments([
        _raw(id="bad", start="next tuesday"),
        _raw(id="late", start="2024-03-05T10:00Z"),
        _raw(id="missing"),
        _raw(id="early", start="2024-03-01T09:00Z"),
    ])
    assert [a.id for a in appts] == ["early", "late", "bad", "missing"]


def test_same_input_gives_identical_output(appointments_payload):
    raw = RawAppointmentList.model_validate(appointments_payload).data
    first = [a.model_dump_json(by_alias=True) for a in normalize_appointments(raw)]
    second = [a.model_dump_json(by_alias=True) for a in normalize_appointments(raw)]
    assert first == second


def test_parse_timestamp_treats_naive_as_utc():
    assert parse_timestamp("2024-03-01T09:00:00") == parse_timestamp("2024-03-01T09:00:00Z")
    assert parse_timestamp("") is None
    assert parse_timestamp("garbage") is None


def test_null_first_patient_entry_gives_null_status_fields():
    raw = RawAppointmentList.model_validate(
        {"data": [{"id": 1, "start": "2024-03-01T09:00:00.000Z", "appointmentPatients": [None]}]}
    ).data
    appt, = normalize_appointments(raw)
    assert appt.status is None
    assert appt.cancellation_reason is None
    assert appt.cancellation_rate is None


def test_wrongly_typed_patient_fields_become_null():
    appt, = normalize_appointments([_raw(
        id=1,
        start="2024-03-01T09:00Z",
        appointmentPatients=[{"status": 3, "cancellationReason": {"code": "x"}, "cancellationRate": "n/a"}],
    )])
    assert appt.status is None
    assert appt.cancellation_reason is None
    assert appt.cancellation_rate is None


def test_cancellation_rate_keeps_its_number_type():
    appts = normalize_appointments([
        _raw(id=1, start="2024-03-01T09:00Z", appointmentPatients=[{"cancellationRate": 50}]),
        _raw(id=2, start="2024-03-02T09:00Z", appointmentPatients=[{"cancellationRate": 12.5}]),
        _raw(id=3, start="2024-03-03T09:00Z", appointmentPatients=[{"cancellationRate": "40"}]),
    ])
    dumped = [a.model_dump(mode="json", by_alias=True)["cancellationRate"] for a in appts]
    assert dumped == [50, 12.5, 40]
    assert isinstance(dumped[0], int)
    assert '"cancellationRate":50,' in appts[0].model_dump_json(by_alias=True)
