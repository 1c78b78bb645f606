"""Tests for main module."""

from whatsapp_gateway import main as main_module


def test_main_serves_app_on_configured_port(monkeypatch) -> None:
    calls: list[dict[str, object]] = []

    def fake_run(app, **kwargs) -> None:  # type: ignore[no-untyped-def]
        calls.append({"app": app, **kwargs})

    monkeypatch.setenv("PORT", "4567")
    monkeypatch.setattr(main_module.uvicorn, "run", fake_run)

    main_module.main()

    assert len(calls) == 1
    assert calls[0]["port"] == 4567
    assert calls[0]["app"].state.container.settings.port == 4567
