from core_utils import generate_request_id


def test_request_ids_are_short_and_unique():
    a = generate_request_id()
    b = generate_request_id()
    assert a != b
    assert len(a) == 16
    int(a, 16)
