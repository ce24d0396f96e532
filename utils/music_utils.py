import numpy as np
import matplotlib.pyplot as plt
from matplotlib.patches import Rectangle

from analysis.notes import NOTE_NAMES, midi_to_note_name

# Pitch graph y-range (C2..C6)
GRAPH_MIN_MIDI = 36
GRAPH_MAX_MIDI = 84

# -------------------------
# Pitch to MIDI
# -------------------------


def hz_to_midi(f0):
    """Convert frequency in Hz to the nearest MIDI note number."""
    if f0 is None or f0 <= 0:
        return None
    return int(round(69 + 12 * np.log2(f0 / 440.0)))


def hz_to_midi_float(f0):
    if f0 is None or f0 <= 0:
        return None
    return float(69 + 12 * np.log2(f0 / 440.0))


def freq_to_note_name(freq: float) -> str:
    midi = hz_to_midi(freq)
    if midi is None or midi < 0 or midi >= 128:
        return "N/A"
    return f"{NOTE_NAMES[midi % 12]}{midi // 12 - 1}"


# -------------------------
# Piano rendering
# -------------------------


def render_piano(ax, midi_notes=(), octaves=2, base_octave=3):
    """Render a piano keyboard and highlight the given MIDI notes."""
    ax.clear()
    if isinstance(midi_notes, (int, np.integer)):
        midi_notes = (midi_notes,)
    midi_notes = [m for m in midi_notes if m is not None]

    white_keys = []
    for i in range(octaves * 7):
        rect = Rectangle(
            (i, 0), 1, 1, facecolor="white", edgecolor="black", zorder=0
        )
        ax.add_patch(rect)
        white_keys.append(rect)

    black_offsets = [0.7, 1.7, 3.7, 4.7, 5.7]
    for octave in range(octaves):
        for offset in black_offsets:
            ax.add_patch(Rectangle(
                (octave * 7 + offset, 0.5), 0.6, 0.5,
                facecolor="black", edgecolor="black", zorder=1,
            ))

    white_map = {0: 0, 2: 1, 4: 2, 5: 3, 7: 4, 9: 5, 11: 6}
    black_map = {1: 0.7, 3: 1.7, 6: 3.7, 8: 4.7, 10: 5.7}
    for midi_note in midi_notes:
        key_index = midi_note % 12
        octave = (midi_note // 12 - 1) - base_octave
        if not 0 <= octave < octaves:
            continue
        if key_index in white_map:
            white_keys[white_map[key_index] + octave * 7].set_facecolor("yellow")
        else:
            ax.add_patch(Rectangle(
                (octave * 7 + black_map[key_index], 0.5), 0.6, 0.5,
                facecolor="yellow", edgecolor="black", zorder=2,
            ))

    ax.set_xlim(0, octaves * 7)
    ax.set_ylim(0, 1)
    ax.axis("off")


# -------------------------
# Live pitch graph
# -------------------------


def plot_pitch_history(ax, history_hz, target_midi=None,
                       min_midi=GRAPH_MIN_MIDI, max_midi=GRAPH_MAX_MIDI):
    """
    Semitone grid with labelled octave lines, the reference note in red and
    the sung pitch trajectory in blue.
    """
    ax.clear()
    for m in range(min_midi, max_midi + 1):
        if m % 12 == 0:
            ax.axhline(m, color="#777777", linewidth=2)
            ax.text(0.0, m, midi_to_note_name(m), fontsize=8, va="bottom")
        else:
            ax.axhline(m, color="#dddddd", linewidth=1)

    if target_midi is not None:
        ax.axhline(target_midi, color="red", linewidth=2)

    midis = [hz_to_midi_float(f) for f in history_hz]
    midis = [m for m in midis if m is not None]
    if midis:
        xs = np.arange(len(midis)) / max(len(midis), 1)
        ax.plot(xs, midis, color="blue")

    ax.set_xlim(0, 1)
    ax.set_ylim(min_midi, max_midi)
    ax.set_ylabel("MIDI")


# -------------------------
# Result summary blocks
# -------------------------


def plot_grade_blocks(ax, results, tessitura=None):
    """One colored block per graded note; tessitura notes get a thick outline."""
    ax.clear()
    included = set(tessitura.indices) if tessitura is not None else set()

    for i, r in enumerate(results):
        ax.add_patch(Rectangle(
            (i, 0), 0.8, 1,
            facecolor=r.grade.color,
            edgecolor="black",
            linewidth=3 if i in included else 0.5,
        ))

    ax.set_xticks([i + 0.4 for i in range(len(results))])
    ax.set_xticklabels([r.note.name for r in results], fontsize=8)
    ax.set_yticks([])
    ax.set_xlim(-0.2, max(len(results), 1))
    ax.set_ylim(0, 1)


def save_report_figure(path, results, tessitura=None, history_hz=(), target_midi=None):
    """Pitch graph, grade blocks and tessitura keyboard in one PNG."""
    fig, (ax_pitch, ax_blocks, ax_piano) = plt.subplots(
        3, 1, figsize=(10, 9), gridspec_kw={"height_ratios": [4, 1, 1.5]}
    )
    try:
        plot_pitch_history(ax_pitch, history_hz, target_midi)
        plot_grade_blocks(ax_blocks, results, tessitura)
        notes = [results[i].note.midi for i in tessitura.indices] if tessitura else []
        render_piano(ax_piano, notes, octaves=4, base_octave=2)
        fig.tight_layout()
        fig.savefig(path)
    finally:
        plt.close(fig)
