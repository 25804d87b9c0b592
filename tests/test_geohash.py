import pytest

from app.quietmap.modules.geo.geohash import encode


@pytest.mark.parametrize(
    "lat,lng,precision,expected",
    [
        (57.64911, 10.40744, 11, "u4pruydqqvj"),
        (51.5074, -0.1278, 9, "gcpvj0duq"),
        (53.8, -1.55, 9, "gcwfh9zrd"),
        (0.0, 0.0, 5, "s0000"),
    ],
)
def test_known_hashes(lat, lng, precision, expected):
    assert encode(lat, lng, precision) == expected


def test_default_precision_is_nine():
    assert len(encode(51.5074, -0.1278)) == 9


def test_shorter_hash_is_prefix_of_longer():
    full = encode(51.5074, -0.1278, 12)
    for p in range(1, 12):
        assert full.startswith(encode(51.5074, -0.1278, p))


def test_corners_stay_in_alphabet():
    assert encode(-90.0, -180.0, 4) == "0000"
    assert encode(90.0, 180.0, 4) == "zzzz"


def test_precision_must_be_positive():
    with pytest.raises(ValueError):
        encode(0.0, 0.0, 0)
