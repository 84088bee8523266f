import numpy as np
import pandas as pd

# 0-based column order taking PX4 airframe rotor numbering to simulation
# numbering (incremental, CCW in NED)
_PX4_TO_SIM = {
    4: [0, 3, 1, 2],
    8: [0, 2, 7, 3, 1, 5, 6, 4],
}

ROTOR_LABELS = {
    4: ['1-FR', '2-BR', '3-BL', '4-FL'],
    8: ['1-FR', '2-RF', '3-RB', '4-BR', '5-BL', '6-LB', '7-LF', '8-FL'],
}


def rotor_map_px4_to_sim(sim, n_rotors: int = None) -> np.ndarray:
    """Reorder actuator columns from PX4 rotor numbering to simulation numbering.

    Handles 4 and 8 rotor frames. See the PX4 airframe reference for its
    ordering.
    """
    sim = np.asarray(sim)
    if n_rotors is None:
        n_rotors = sim.shape[1]
    if n_rotors not in _PX4_TO_SIM:
        raise ValueError(f"Unrecognized number of rotors: {n_rotors}")
    return sim[:, _PX4_TO_SIM[n_rotors]]


def n_outputs(actuator_outputs: pd.DataFrame) -> int:
    cols = [c for c in actuator_outputs.columns if c.startswith('output[')]
    if 'noutputs' in actuator_outputs.columns and len(actuator_outputs):
        return min(int(actuator_outputs['noutputs'].iloc[0]), len(cols))
    return len(cols)


def actuator_matrix(actuator_outputs: pd.DataFrame) -> np.ndarray:
    """(N, noutputs) array of the outputs actually in use."""
    n = n_outputs(actuator_outputs)
    return actuator_outputs[[f'output[{i}]' for i in range(n)]].to_numpy(dtype=float)


def rotor_labels(n: int):
    return ROTOR_LABELS.get(n, [str(i + 1) for i in range(n)])
