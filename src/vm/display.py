"""CHIP-8 pygame Display

Renders frames published by the execution loop. pygame must be driven
from the main thread, so this class never touches emulator state
directly; it only draws ``Frame`` snapshots.
"""

import logging
from typing import Optional, Tuple

import pygame

from .frame_buffer import HEIGHT, WIDTH

logger = logging.getLogger(__name__)

ON_COLOR = (255, 255, 255)
OFF_COLOR = (0, 0, 0)
WINDOW_TITLE = "CHIP-8"


class Display:
    """Scaled 64x32 pygame window."""

    def __init__(self, scale: int = 10, fps: int = 60):
        """Initialize display settings.

        Args:
            scale: Window pixels per CHIP-8 pixel
            fps: Frame rate cap for the render loop
        """
        self.scale = scale
        self.fps = fps
        self.screen: Optional[pygame.Surface] = None
        self.clock: Optional[pygame.time.Clock] = None
        self.pygame_initialized = False
        self.frame_count = 0
        self._last_sequence = -1
        self._sound_shown = False

    def initialize_display(self) -> bool:
        """Open the pygame window."""
        try:
            pygame.init()
            self.screen = pygame.display.set_mode((WIDTH * self.scale, HEIGHT * self.scale))
            pygame.display.set_caption(WINDOW_TITLE)
            self.clock = pygame.time.Clock()
            self.screen.fill(OFF_COLOR)
            pygame.display.flip()
            self.pygame_initialized = True
            return True
        except pygame.error as e:
            logger.error("Failed to initialize display: %s", e)
            return False

    def shutdown_display(self) -> None:
        """Shutdown pygame display."""
        if self.pygame_initialized:
            pygame.quit()
            self.pygame_initialized = False
            self.screen = None

    def poll_events(self) -> bool:
        """Handle window events.

        Returns:
            False when the window was closed or 'q' was pressed
        """
        for event in pygame.event.get():
            if event.type == pygame.QUIT:
                return False
            if event.type == pygame.KEYDOWN and event.key == pygame.K_q:
                return False
        return True

    def update_display(self, frame) -> bool:
        """Draw the latest frame, if it changed, and pump events.

        Args:
            frame: Latest published ``Frame`` or None

        Returns:
            False if the user asked to quit
        """
        if not self.pygame_initialized or self.screen is None:
            return False

        if not self.poll_events():
            return False

        if frame is not None and frame.sequence != self._last_sequence:
            self._draw(frame.pixels)
            self._show_sound(frame.play_sound)
            self._last_sequence = frame.sequence
            pygame.display.flip()
            self.frame_count += 1

        self.clock.tick(self.fps)
        return True

    def _draw(self, pixels: Tuple[bytes, ...]) -> None:
        self.screen.fill(OFF_COLOR)
        for y, row in enumerate(pixels):
            for x, pixel in enumerate(row):
                if pixel:
                    rect = pygame.Rect(x * self.scale, y * self.scale, self.scale, self.scale)
                    pygame.draw.rect(self.screen, ON_COLOR, rect)

    def _show_sound(self, play_sound: bool) -> None:
        if play_sound != self._sound_shown:
            caption = f"{WINDOW_TITLE} [sound]" if play_sound else WINDOW_TITLE
            pygame.display.set_caption(caption)
            self._sound_shown = play_sound
