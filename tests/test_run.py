from unittest.mock import patch

from cipher_press import run


@patch("cipher_press.run.logging")
@patch("cipher_press.run.display")
@patch("cipher_press.config.load_dotenv")
def test_main_releases_every_sample(mock_load_dotenv, mock_display, mock_logging, monkeypatch):
    monkeypatch.delenv("CIPHER_PRESS_PRIVATE_KEY", raising=False)
    monkeypatch.delenv("CIPHER_PRESS_RECIPIENT_PUBLIC_KEY", raising=False)

    run.main()

    mock_display.halt.assert_not_called()
    released = [c.args for c in mock_display.release_complete.call_args_list]
    assert len(released) == len(run.SAMPLES)
    for text, expected in released:
        assert text == expected

    summary = mock_display.receipt_summary.call_args.args[0]
    assert len(summary) == len(run.SAMPLES)


@patch("cipher_press.run.logging")
@patch("cipher_press.run.display")
@patch("cipher_press.config.load_dotenv")
def test_main_halts_on_wrong_recipient(mock_load_dotenv, mock_display, mock_logging, monkeypatch):
    from cipher_press.ecies import generate_keypair

    _, stranger = generate_keypair()
    monkeypatch.delenv("CIPHER_PRESS_PRIVATE_KEY", raising=False)
    monkeypatch.setenv("CIPHER_PRESS_RECIPIENT_PUBLIC_KEY", stranger)

    run.main()

    assert mock_display.halt.call_count == len(run.SAMPLES)
    assert "IntegrityError" in mock_display.halt.call_args.args[0]
