import config


def _pyautogui():
    # pyautogui connects to the display when imported
    import pyautogui
    return pyautogui


class PyAutoGuiPointer:
    def __init__(self, failsafe=config.POINTER_FAILSAFE, pause=config.POINTER_PAUSE, backend=None):
        self.backend = backend if backend is not None else _pyautogui()
        self.backend.FAILSAFE = failsafe
        self.backend.PAUSE = pause

    def press(self, location):
        self.backend.mouseDown(location.x, location.y)

    def move_to(self, location):
        self.backend.moveTo(location.x, location.y)

    def release(self, location):
        self.backend.mouseUp(location.x, location.y)


def screen_size(backend=None):
    backend = backend if backend is not None else _pyautogui()
    width, height = backend.size()
    return width, height
