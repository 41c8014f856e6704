"""
Delivery channels for MedicFácil announcements.

When a dose is due the user is alerted in several ways at once:

- visual: the in-app card (drawn by whoever runs the dispatcher, e.g. the CLI)
- notification: a desktop notification through `notify-send`
- audio: an alert sound played with `aplay` (or MEDICFACIL_AUDIO_PLAYER)
- speech: the medication read aloud with `espeak-ng` (or MEDICFACIL_SPEECH_COMMAND)
- haptic: a vibration pattern through MEDICFACIL_VIBRATE_COMMAND, when set

Every channel has the same deliver(occurrence) operation and may fail on
its own. The CapabilitySet runs them all and logs failures, so a missing
speaker or a refused notification never stops the other channels.

Sound and speech are started in the background (Popen) and not waited for.
"""

import shutil
import subprocess
from pathlib import Path
from typing import Callable, Iterable, List, Optional

from . import config
from .errors import ChannelUnavailable, PermissionDenied
from .logger import get_logger
from .reminders import NOTIFICATION_TITLE, notification_body, notification_tag, speech_text


logger = get_logger(__name__)


class Channel:
    """A way of alerting the user. Subclasses implement deliver()."""

    name = 'channel'

    def deliver(self, occurrence):
        raise NotImplementedError


# ============================================================
# CHANNELS
# ============================================================

class VisualChannel(Channel):
    """Shows the in-app card by calling a renderer with the occurrence."""

    name = 'visual'

    def __init__(self, renderer: Callable):
        self.renderer = renderer

    def deliver(self, occurrence):
        self.renderer(occurrence)


class NotificationChannel(Channel):
    """
    Desktop notifications via `notify-send`.

    Permission is asked once with request_permission(); until it is granted
    every delivery raises PermissionDenied.
    """

    name = 'notification'

    def __init__(self, command: str = 'notify-send', icon: Optional[str] = None):
        self.command = command
        self.icon = icon
        self.granted = False

    def request_permission(self) -> bool:
        """
        Ask for permission to show notifications.

        On a desktop the permission is granted when a notification daemon
        client is installed.
        """
        if self.granted:
            return True
        self.granted = shutil.which(self.command) is not None
        if not self.granted:
            logger.warning("Notifications not supported: '%s' not found", self.command)
        return self.granted

    def show(self, title: str, body: str, icon: Optional[str] = None, tag: Optional[str] = None):
        """Raise one notification. Requires permission."""
        if not self.granted:
            raise PermissionDenied("Notification permission not granted")

        args = [self.command, '--app-name=MedicFácil', '--urgency=critical']
        if icon:
            args.append(f'--icon={icon}')
        if tag:
            args.append(f'--hint=string:x-dunst-stack-tag:{tag}')
        args.extend([title, body])
        subprocess.run(args, check=True, timeout=5,
                       stdout=subprocess.DEVNULL, stderr=subprocess.DEVNULL)

    def deliver(self, occurrence):
        medication = occurrence.medication
        self.show(
            NOTIFICATION_TITLE,
            notification_body(medication, occurrence.time_point),
            icon=medication.photo or self.icon,
            tag=notification_tag(medication, occurrence.time_point),
        )


class AudioChannel(Channel):
    """Plays the alert sound once."""

    name = 'audio'

    def __init__(self, sound: Path = None, player: str = None):
        self.sound = Path(sound) if sound is not None else config.ALERT_SOUND
        self.player = player or config.AUDIO_PLAYER

    def play_cue(self, sound: Path):
        if shutil.which(self.player) is None:
            raise ChannelUnavailable(f"Audio player '{self.player}' not found")
        if not Path(sound).exists():
            raise ChannelUnavailable(f"Alert sound not found: {sound}")
        subprocess.Popen([self.player, str(sound)],
                         stdout=subprocess.DEVNULL, stderr=subprocess.DEVNULL)

    def deliver(self, occurrence):
        self.play_cue(self.sound)


class HapticChannel(Channel):
    """Vibrates once with the configured pattern (milliseconds)."""

    name = 'haptic'

    def __init__(self, command: Optional[str] = None, pattern: Iterable[int] = None):
        self.command = command if command is not None else config.VIBRATE_COMMAND
        self.pattern = tuple(pattern) if pattern is not None else config.VIBRATION_PATTERN

    def vibrate(self, pattern: Iterable[int]):
        if not self.command or shutil.which(self.command) is None:
            raise ChannelUnavailable("Vibration not supported on this device")
        subprocess.run([self.command, *[str(ms) for ms in pattern]], check=True, timeout=5,
                       stdout=subprocess.DEVNULL, stderr=subprocess.DEVNULL)

    def deliver(self, occurrence):
        self.vibrate(self.pattern)


class SpeechChannel(Channel):
    """
    Reads the medication aloud.

    Rate, pitch and volume use the Web Speech scale (1.0 = normal) and are
    converted to espeak's words-per-minute, pitch and amplitude.
    """

    name = 'speech'

    def __init__(self, command: str = None, locale: str = config.SPEECH_LOCALE,
                 rate: float = config.SPEECH_RATE, pitch: float = config.SPEECH_PITCH,
                 volume: float = config.SPEECH_VOLUME):
        self.command = command or config.SPEECH_COMMAND
        self.locale = locale
        self.rate = rate
        self.pitch = pitch
        self.volume = volume

    def speak(self, text: str, locale: str, rate: float, pitch: float, volume: float):
        # Checked on every call: a speech engine can come and go
        if shutil.which(self.command) is None:
            raise ChannelUnavailable(f"Speech engine '{self.command}' not found")

        args = [
            self.command,
            '-v', locale.lower(),
            '-s', str(int(175 * rate)),
            '-p', str(int(50 * pitch)),
            '-a', str(int(100 * volume)),
            text,
        ]
        subprocess.Popen(args, stdout=subprocess.DEVNULL, stderr=subprocess.DEVNULL)

    def deliver(self, occurrence):
        self.speak(speech_text(occurrence.medication), self.locale,
                   self.rate, self.pitch, self.volume)


# ============================================================
# CAPABILITY SET
# ============================================================

class CapabilitySet:
    """
    The channels available for this session.

    deliver() runs every channel once; failures are logged and skipped.
    """

    def __init__(self, channels: Iterable[Channel] = ()):
        self.channels: List[Channel] = list(channels)

    def __iter__(self):
        return iter(self.channels)

    def names(self) -> List[str]:
        return [channel.name for channel in self.channels]

    def request_permissions(self) -> dict:
        """
        Ask every channel that needs it for permission.

        Returns:
            Dict of channel name -> granted
        """
        results = {}
        for channel in self.channels:
            request = getattr(channel, 'request_permission', None)
            if request is None:
                continue
            try:
                results[channel.name] = bool(request())
            except Exception:
                logger.exception("Permission request failed for %s", channel.name)
                results[channel.name] = False
        return results

    def deliver(self, occurrence, only: Iterable[str] = None) -> dict:
        """
        Deliver an occurrence on every channel (or only the named ones).

        Returns:
            Dict of channel name -> True if delivered, False if it failed
        """
        wanted = set(only) if only is not None else None
        results = {}

        for channel in self.channels:
            if wanted is not None and channel.name not in wanted:
                continue
            try:
                channel.deliver(occurrence)
                results[channel.name] = True
            except ChannelUnavailable as e:
                logger.warning("Channel %s unavailable: %s", channel.name, e)
                results[channel.name] = False
            except PermissionDenied as e:
                logger.warning("Channel %s not permitted: %s", channel.name, e)
                results[channel.name] = False
            except Exception:
                logger.exception("Channel %s failed", channel.name)
                results[channel.name] = False

        return results


def build_capabilities(settings, renderer: Optional[Callable] = None) -> CapabilitySet:
    """
    Build the channels allowed by the user's settings.

    The visual card and the notification are always on; sound, voice and
    vibration follow their flags in Settings.
    """
    channels: List[Channel] = []
    if renderer is not None:
        channels.append(VisualChannel(renderer))
    channels.append(NotificationChannel())
    if settings.sound_enabled:
        channels.append(AudioChannel())
    if settings.vibration_enabled:
        channels.append(HapticChannel())
    if settings.voice_enabled:
        channels.append(SpeechChannel())
    return CapabilitySet(channels)
