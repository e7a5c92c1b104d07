import numpy as np

# Noms de notes (tempérament égal, A4 = 440 Hz)
NOTE_NAMES = ["C", "C#", "D", "D#", "E", "F", "F#", "G", "G#", "A", "A#", "B"]
A4_HZ, MIDI_A4 = 440.0, 69
UNVOICED_NOTE = "-"


def frequency_to_midi(freq: float, a4: float = A4_HZ) -> float:
    """
    Convertit une fréquence (Hz) en numéro MIDI *fractionnaire*.
    A4 (440 Hz) = 69. Retourne 0 pour une fréquence nulle ou négative.
    """
    if freq <= 0:
        return 0.0
    return float(MIDI_A4 + 12.0 * np.log2(freq / a4))


def midi_to_frequency(midi: float, a4: float = A4_HZ) -> float:
    """Convertit un numéro MIDI (éventuellement fractionnaire) en fréquence (Hz)."""
    return float(a4 * 2.0 ** ((midi - MIDI_A4) / 12.0))


def midi_to_note_name(midi: float) -> str:
    """
    Nom de la note la plus proche :
      - 69    → A4
      - 60.3  → C4
      - 56    → G#3
    """
    rounded = int(round(midi))
    octave = rounded // 12 - 1
    return f"{NOTE_NAMES[rounded % 12]}{octave}"


def get_cents_off(midi: float) -> float:
    """Écart (cents) par rapport au demi-ton le plus proche, dans [-50, 50]."""
    return float((midi - round(midi)) * 100.0)


def describe_frequency(freq: float) -> tuple[float, int, float, str]:
    """
    Valeurs dérivées d'une fréquence : (midi fractionnaire, midi arrondi, cents, nom).
    Une fréquence nulle donne (0, 0, 0, "-").
    """
    if freq <= 0:
        return 0.0, 0, 0.0, UNVOICED_NOTE
    midi = frequency_to_midi(freq)
    return midi, int(round(midi)), get_cents_off(midi), midi_to_note_name(midi)
