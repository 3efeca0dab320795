"""Per-frame RVM matting pipeline.

One call to process_frame runs, in order:

1. encode the frame to a [1, 3, H, W] tensor at the model input size
2. feed src + downsample_ratio + r1i..r4i to the backend
3. inside the backend's result scope: decode fgr/pha back to the original
   frame size and copy r1o..r4o into a new RecurrentState
4. composite foreground and alpha into RGBA
5. commit the new state and result

Nothing is committed until step 5, so a failure at any step leaves the
recurrent state and the last result exactly as they were.
"""

from __future__ import annotations

import logging
import time
from typing import Optional, Sequence, Tuple

from rvm_matting.backends.base import InferenceBackend, input_mapping
from rvm_matting.codec import ChannelMode, FramePixels, ImageCodec
from rvm_matting.compositor import MattingResult, composite
from rvm_matting.config import Settings
from rvm_matting.errors import InferenceError, MattingError
from rvm_matting.ratio import RatioController, clamp_ratio
from rvm_matting.state import RecurrentState, RecurrentStateStore
from rvm_matting.tensor import NamedTensor, TensorBuffer

logger = logging.getLogger("rvm.pipeline")


class MattingPipeline:
    """Drives a stateful RVM backend one frame at a time.

    Owns its recurrent state exclusively; run one pipeline per video stream.
    Not safe for concurrent process_frame calls.
    """

    def __init__(
        self,
        backend: InferenceBackend,
        input_width: int = 512,
        input_height: int = 512,
        downsample_ratio: float = 0.25,
        ratio_controller: Optional[RatioController] = None,
    ):
        if input_width <= 0 or input_height <= 0:
            raise ValueError(f"Input resolution must be positive, got {input_width}x{input_height}")

        self.backend = backend
        self.codec = ImageCodec()
        self.store = RecurrentStateStore()
        self.ratio_controller = ratio_controller
        self._input_size = (input_width, input_height)
        self._state: RecurrentState = self.store.initial()
        self._last_result: Optional[MattingResult] = None
        self._frame_index = 0
        self._set_ratio(downsample_ratio)

        logger.info(
            "Matting pipeline ready (input=%dx%d, downsample=%.2f)",
            input_width, input_height, self._ratio,
        )

    @classmethod
    def from_settings(
        cls, settings: Settings, backend: Optional[InferenceBackend] = None
    ) -> "MattingPipeline":
        """Build a pipeline (and, unless given, its backend) from settings."""
        if backend is None:
            from rvm_matting.backends import create_backend
            backend = create_backend(settings)

        controller = None
        if settings.adaptive.enabled:
            controller = RatioController(
                target_frame_ms=settings.adaptive.target_frame_ms,
                step=settings.adaptive.step,
                tolerance=settings.adaptive.tolerance,
                window=settings.adaptive.window,
            )

        return cls(
            backend,
            input_width=settings.pipeline.input_width,
            input_height=settings.pipeline.input_height,
            downsample_ratio=settings.pipeline.downsample_ratio,
            ratio_controller=controller,
        )

    # --- Downsample ratio ---

    def _set_ratio(self, ratio: float):
        self._ratio = clamp_ratio(ratio)
        self._ratio_tensor = TensorBuffer.scalar(self._ratio)

    def set_downsample_ratio(self, ratio: float):
        """Clamp ratio to [0.1, 1.0]; takes effect on the next frame.

        Recurrent state is kept. The backend may report differently shaped
        state tensors afterwards, which the store accepts as-is.
        """
        self._set_ratio(ratio)
        logger.info("Downsample ratio set to %.2f", self._ratio)

    @property
    def downsample_ratio(self) -> float:
        return self._ratio

    # --- State ---

    @property
    def input_size(self) -> Tuple[int, int]:
        return self._input_size

    @property
    def recurrent_state(self) -> RecurrentState:
        return self._state

    def restore_state(self, state: Sequence[TensorBuffer]):
        """Replace the recurrent state with a previously saved one."""
        self._state = state if isinstance(state, RecurrentState) else RecurrentState(state)

    def reset(self):
        """Forget temporal memory; call before an unrelated sequence starts."""
        self._state = self.store.reset()
        if self.ratio_controller is not None:
            self.ratio_controller.reset()
        logger.info("Recurrent state reset")

    @property
    def frame_index(self) -> int:
        """Number of frames processed successfully."""
        return self._frame_index

    # --- Results ---

    @property
    def last_result(self) -> Optional[MattingResult]:
        return self._last_result

    @property
    def foreground(self) -> Optional[FramePixels]:
        return self._last_result.foreground if self._last_result else None

    @property
    def alpha(self) -> Optional[FramePixels]:
        return self._last_result.alpha if self._last_result else None

    @property
    def composite(self) -> Optional[FramePixels]:
        return self._last_result.composite if self._last_result else None

    # --- Frame processing ---

    def _build_inputs(self, src: TensorBuffer) -> dict:
        named = [
            NamedTensor("src", src),
            NamedTensor("downsample_ratio", self._ratio_tensor),
        ]
        named.extend(self._state.as_named())
        return input_mapping(named)

    def _run_backend(self, inputs: dict):
        try:
            return self.backend.run(inputs)
        except MattingError:
            raise
        except Exception as e:
            logger.error("Inference failed on frame %d: %s", self._frame_index, e)
            raise InferenceError(str(e) or type(e).__name__) from e

    def process_frame(self, image: FramePixels) -> MattingResult:
        """Matte one frame and make the result the pipeline's last result."""
        start = time.perf_counter()
        width, height = self._input_size
        src = self.codec.encode(image, width, height)

        with self._run_backend(self._build_inputs(src)) as outputs:
            missing = [name for name in ("fgr", "pha") if name not in outputs]
            if missing:
                raise InferenceError(f"Backend did not return {', '.join(missing)}")
            foreground = self.codec.decode(outputs["fgr"], image.width, image.height, ChannelMode.RGB)
            alpha = self.codec.decode(outputs["pha"], image.width, image.height, ChannelMode.ALPHA)
            next_state = self.store.update(outputs)

        rgba = composite(foreground, alpha)
        result = MattingResult(
            foreground=foreground,
            alpha=alpha,
            composite=rgba,
            frame_index=self._frame_index,
        )

        self._state = next_state
        self._last_result = result
        self._frame_index += 1

        elapsed_ms = (time.perf_counter() - start) * 1000.0
        logger.debug(
            "Frame %d matted in %.1fms (%dx%d, state=%s)",
            result.frame_index, elapsed_ms, image.width, image.height,
            [list(s) for s in next_state.shapes],
        )

        if self.ratio_controller is not None:
            new_ratio = self.ratio_controller.observe(elapsed_ms, self._ratio)
            if new_ratio is not None:
                self.set_downsample_ratio(new_ratio)

        return result

    # --- Lifecycle ---

    def close(self):
        self.backend.close()

    def __enter__(self) -> "MattingPipeline":
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False
