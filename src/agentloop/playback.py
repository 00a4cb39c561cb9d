from __future__ import annotations

from enum import StrEnum


class AgentMode(StrEnum):
    AUTOMATIC = "automatic"
    PAUSE = "pause"


class PlaybackControl(StrEnum):
    PLAY = "play"
    PAUSE = "pause"


class PlaybackController:
    """Play/pause flag for step-paused runs.

    In pause mode the flag starts at PAUSE. A PLAY flag admits exactly one
    loop iteration and is then reset to PAUSE, so every resume buys one task
    cycle. Automatic mode never suspends.
    """

    def __init__(
        self,
        mode: AgentMode = AgentMode.AUTOMATIC,
        playback: PlaybackControl | None = None,
    ) -> None:
        self._mode = AgentMode(mode)
        if playback is None:
            playback = (
                PlaybackControl.PAUSE if self._mode == AgentMode.PAUSE else PlaybackControl.PLAY
            )
        self.playback = PlaybackControl(playback)

    @property
    def mode(self) -> AgentMode:
        return self._mode

    def set_playback(self, value: PlaybackControl) -> None:
        self.playback = PlaybackControl(value)

    def should_suspend(self) -> bool:
        if self._mode != AgentMode.PAUSE:
            return False
        if self.playback == PlaybackControl.PAUSE:
            return True
        self.playback = PlaybackControl.PAUSE
        return False
