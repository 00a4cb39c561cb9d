from agentloop.playback import AgentMode, PlaybackControl, PlaybackController


def test_automatic_mode_never_suspends() -> None:
    controller = PlaybackController(AgentMode.AUTOMATIC)
    controller.set_playback(PlaybackControl.PAUSE)

    assert controller.should_suspend() is False
    assert controller.should_suspend() is False


def test_pause_mode_starts_paused() -> None:
    controller = PlaybackController(AgentMode.PAUSE)

    assert controller.playback == PlaybackControl.PAUSE
    assert controller.should_suspend() is True
    assert controller.should_suspend() is True


def test_play_admits_one_iteration_then_pauses_again() -> None:
    controller = PlaybackController(AgentMode.PAUSE)
    controller.set_playback(PlaybackControl.PLAY)

    assert controller.should_suspend() is False
    assert controller.playback == PlaybackControl.PAUSE
    assert controller.should_suspend() is True


def test_mode_accepts_plain_strings() -> None:
    controller = PlaybackController("pause", "play")  # type: ignore[arg-type]

    assert controller.mode == AgentMode.PAUSE
    assert controller.playback == PlaybackControl.PLAY
