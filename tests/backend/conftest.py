"""
Backend test fixtures.

Mocks for the optional SAM2 stack so the oracle adapter can be tested
without torch or a GPU.
"""

from unittest.mock import MagicMock, patch

import numpy as np
import pytest


@pytest.fixture
def mock_sam2():
    """
    Patch the sam2 modules imported lazily by Sam2Oracle.load_model().

    Yields:
        Tuple of (build_sam2 mock, predictor instance mock)
    """
    mock_build_sam_module = MagicMock()
    mock_predictor_module = MagicMock()

    predictor = MagicMock()
    predictor.predict.return_value = (
        np.stack([
            np.zeros((4, 4), dtype=np.float32),
            np.ones((4, 4), dtype=np.float32),
            np.zeros((4, 4), dtype=np.float32),
        ]),
        np.array([0.2, 0.9, 0.5], dtype=np.float32),
        None,
    )
    mock_predictor_module.SAM2ImagePredictor.return_value = predictor

    modules = {
        "sam2": MagicMock(),
        "sam2.build_sam": mock_build_sam_module,
        "sam2.sam2_image_predictor": mock_predictor_module,
    }
    with patch.dict("sys.modules", modules):
        yield mock_build_sam_module.build_sam2, predictor
