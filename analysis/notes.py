# analysis/notes.py
from dataclasses import dataclass

NOTE_NAMES = ["C", "C#", "D", "D#", "E", "F", "F#", "G", "G#", "A", "A#", "B"]

# Pitch classes of the white keys
NATURAL_PITCH_CLASSES = (0, 2, 4, 5, 7, 9, 11)


@dataclass(frozen=True)
class Note:
    name: str
    midi: int
    freq: float


def midi_to_freq(midi) -> float:
    return 440.0 * 2.0 ** ((midi - 69) / 12.0)


def midi_to_note_name(midi: int) -> str:
    return f"{NOTE_NAMES[midi % 12]}{midi // 12 - 1}"


def note_name_to_midi(name: str) -> int:
    """Parse names like "C4", "f#3" or "A-1" back to a MIDI number."""
    text = name.strip()
    if len(text) < 2:
        raise ValueError(f"not a note name: {name!r}")

    pitch = text[0].upper()
    rest = text[1:]
    if rest[:1] == "#":
        pitch += "#"
        rest = rest[1:]
    if pitch not in NOTE_NAMES:
        raise ValueError(f"not a note name: {name!r}")

    try:
        octave = int(rest)
    except ValueError:
        raise ValueError(f"not a note name: {name!r}") from None

    return (octave + 1) * 12 + NOTE_NAMES.index(pitch)


def is_natural(midi: int) -> bool:
    return midi % 12 in NATURAL_PITCH_CLASSES


def generate_note_list(midi_low: int, midi_high: int) -> list[Note]:
    """
    Natural (white-key) notes from midi_low to midi_high inclusive,
    ascending. An inverted range yields an empty list.
    """
    return [
        Note(midi_to_note_name(m), m, midi_to_freq(m))
        for m in range(int(midi_low), int(midi_high) + 1)
        if is_natural(m)
    ]
