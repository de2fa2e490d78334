from dataclasses import dataclass


@dataclass
class SupervoxelConfig:
    """Configuration data class for the continuous supervoxel engine."""

    # camera
    depth_to_z: float = 0.001  # raw depth units -> meters
    center_x: float = 320.0
    center_y: float = 240.0
    px_focal: float = 528.0

    # valid raw depth range
    depth_min: int = 0
    depth_max: int = 2000

    # clustering
    cluster_radius: float = 0.025  # physical supervoxel radius in meters
    cluster_time_radius: int = 5  # TR=15 -> 0.5 s
    cluster_iterations: int = 5
    cluster_radius_mult: float = 1.7
    spatial_time_increase: float = 0.0  # 0.005 -> 0.15 m/s

    # seeding
    seed_retries: int = 100

    @property
    def density_decay(self) -> float:
        """Exponential decay of the feedback density per frame."""
        return 1.0 - 1.0 / float(2 * self.cluster_time_radius + 1)


def get_config(camera: str = "kinect") -> SupervoxelConfig:
    """
    Return the configuration for a camera.

    Args:
        camera: Name of the camera preset (kinect, kinect_calibrated).

    Returns:
        The configuration object with camera-specific overrides.

    Raises:
        ValueError: If the camera preset is unknown.

    """
    cfg = SupervoxelConfig()

    if camera == "kinect":
        pass

    elif camera == "kinect_calibrated":
        cfg.center_x = 318.39
        cfg.center_y = 271.99
        cfg.px_focal = 528.01

    else:
        msg = f"Unknown camera preset '{camera}'"
        raise ValueError(msg)

    return cfg
