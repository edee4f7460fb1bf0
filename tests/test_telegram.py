import time

from conftest import BOT_TOKEN, sign_telegram_data

from security.telegram import (
    AUTH_DATA_MAX_AGE_SECONDS,
    VerificationReason,
    build_data_check_string,
    extract_user_info,
    verify_telegram_auth,
)


def _fresh_data(**overrides):
    data = {
        "id": 123456789,
        "first_name": "Test",
        "username": "testuser",
        "auth_date": int(time.time()),
    }
    data.update(overrides)
    return sign_telegram_data(data)


def test_data_check_string_is_sorted_and_skips_hash():
    check_string = build_data_check_string(
        {"username": "u", "id": 1, "hash": "abc", "auth_date": 5, "last_name": None}
    )

    assert check_string == "auth_date=5\nid=1\nusername=u"


def test_valid_signature_is_accepted():
    result = verify_telegram_auth(_fresh_data(), BOT_TOKEN)

    assert result.valid
    assert result.reason == VerificationReason.OK


def test_extra_fields_are_part_of_the_signature():
    data = _fresh_data(photo_url="https://t.me/i/userpic/1.jpg")
    assert verify_telegram_auth(data, BOT_TOKEN).valid

    data["photo_url"] = "https://evil.example/1.jpg"
    assert verify_telegram_auth(data, BOT_TOKEN).reason == VerificationReason.BAD_SIGNATURE


def test_tampered_field_is_rejected():
    data = _fresh_data()
    data["id"] = 1

    result = verify_telegram_auth(data, BOT_TOKEN)

    assert not result.valid
    assert result.reason == VerificationReason.BAD_SIGNATURE


def test_wrong_bot_token_is_rejected():
    data = _fresh_data()

    assert not verify_telegram_auth(data, "987654:another-bot").valid


def test_missing_hash_is_rejected():
    data = _fresh_data()
    del data["hash"]

    assert verify_telegram_auth(data, BOT_TOKEN).reason == VerificationReason.BAD_SIGNATURE


def test_non_numeric_auth_date_is_rejected():
    data = sign_telegram_data({"id": 1, "first_name": "Test", "auth_date": "yesterday"})

    assert verify_telegram_auth(data, BOT_TOKEN).reason == VerificationReason.BAD_SIGNATURE


def test_stale_data_is_rejected_even_when_correctly_signed():
    now = time.time()
    data = _fresh_data(auth_date=int(now) - AUTH_DATA_MAX_AGE_SECONDS - 1)

    result = verify_telegram_auth(data, BOT_TOKEN, now=now)

    assert not result.valid
    assert result.reason == VerificationReason.STALE


def test_stale_wins_over_bad_signature():
    now = time.time()
    data = _fresh_data(auth_date=int(now) - 90000)
    data["hash"] = "0" * 64

    assert verify_telegram_auth(data, BOT_TOKEN, now=now).reason == VerificationReason.STALE


def test_data_exactly_one_day_old_is_still_fresh():
    now = 1_700_000_000
    data = _fresh_data(auth_date=now - AUTH_DATA_MAX_AGE_SECONDS)

    assert verify_telegram_auth(data, BOT_TOKEN, now=now).valid


def test_extract_user_info_normalizes_optional_fields():
    info = extract_user_info({"id": 42, "first_name": "Ann", "username": ""})

    assert info == {
        "id": "42",
        "first_name": "Ann",
        "last_name": None,
        "username": None,
        "photo_url": None,
    }
