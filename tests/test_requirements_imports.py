def test_runtime_deps_import():
    """
    Everything the segmentation pipeline needs at runtime. Unlike optional
    extras, a missing one of these is a broken install.
    """
    import cv2  # noqa: F401
    import numpy  # noqa: F401
    import pydantic  # noqa: F401
    import scipy.ndimage  # noqa: F401
    import yaml  # noqa: F401


def test_segmentation_exports_resolve():
    import segmentation

    for name in segmentation.__all__:
        assert callable(getattr(segmentation, name))
