from dataclasses import dataclass, field

from dasv.datatypes import Cluster, Frame


@dataclass
class Timeseries:
    """Frames covering the contiguous time interval [begin, end)."""

    frames: list[Frame] = field(default_factory=list)
    begin: int = 0
    end: int = 0

    def __len__(self) -> int:
        return len(self.frames)

    def clear(self) -> None:
        self.frames.clear()
        self.begin = 0
        self.end = 0

    def add(self, frame: Frame) -> None:
        """
        Append a frame at the end of the series.

        Args:
            frame: Frame with time equal to the current end time.

        Raises:
            ValueError: If the frame time would create a gap or duplicate.

        """
        if frame.time != self.end:
            msg = f"Frame time {frame.time} does not match series end {self.end}"
            raise ValueError(msg)
        self.frames.append(frame)
        self.end += 1

    def purge(self, before: int) -> list[Frame]:
        """
        Remove all frames with time < before.

        Args:
            before: First time which is kept.

        Returns:
            The removed frames in time order.

        """
        n = 0
        while n < len(self.frames) and self.frames[n].time < before:
            n += 1
        purged = self.frames[:n]
        del self.frames[:n]
        self.begin = max(self.begin, min(before, self.end))
        return purged

    def get_frame(self, time: int) -> Frame:
        if not self.begin <= time < self.end:
            msg = f"Time {time} outside of series [{self.begin}, {self.end})"
            raise IndexError(msg)
        return self.frames[time - self.begin]

    def get_frame_range(self, t_begin: int, t_end: int) -> list[Frame]:
        """Frames with t_begin <= time < t_end, clipped to the series."""
        i0 = max(t_begin, self.begin) - self.begin
        i1 = min(t_end, self.end) - self.begin
        if i1 <= i0:
            return []
        return self.frames[i0:i1]

    def clusters(self) -> list[Cluster]:
        return [c for f in self.frames for c in f.clusters]
