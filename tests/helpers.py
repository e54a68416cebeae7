from io import BytesIO

from openpyxl import Workbook
import xlwt

from ticket_scanner.services.interaction import Interaction
from ticket_scanner.services.scanner import QrDecoder


class ScriptedInteraction(Interaction):
    def __init__(self, confirms=(), answers=()):
        self._confirms = list(confirms)
        self._answers = list(answers)
        self.asked = []

    def confirm(self, message):
        self.asked.append(message)
        return self._confirms.pop(0) if self._confirms else False

    def prompt(self, message):
        self.asked.append(message)
        return self._answers.pop(0) if self._answers else None


class FakeDecoder(QrDecoder):
    def __init__(self, frames=(), start_error=None, read_error=None):
        self.frames = list(frames)
        self.start_error = start_error
        self.read_error = read_error
        self.running = False
        self.started = 0
        self.stopped = 0
        self.cleared = 0

    @property
    def is_running(self):
        return self.running

    def start(self):
        self.started += 1
        if self.start_error is not None:
            raise self.start_error
        self.running = True

    def read(self):
        if self.read_error is not None:
            raise self.read_error
        return self.frames.pop(0) if self.frames else None

    def stop(self):
        self.stopped += 1
        self.running = False

    def clear(self):
        self.cleared += 1


def make_xlsx(rows, header=None) -> bytes:
    workbook = Workbook()
    sheet = workbook.active
    header = header or list(rows[0].keys())
    sheet.append(header)
    for row in rows:
        sheet.append([row.get(key) for key in header])
    buffer = BytesIO()
    workbook.save(buffer)
    return buffer.getvalue()


def make_xls(rows, header=None) -> bytes:
    workbook = xlwt.Workbook()
    sheet = workbook.add_sheet("Sheet1")
    header = header or list(rows[0].keys())
    for column, key in enumerate(header):
        sheet.write(0, column, key)
    for index, row in enumerate(rows, start=1):
        for column, key in enumerate(header):
            value = row.get(key)
            if value is not None:
                sheet.write(index, column, value)
    buffer = BytesIO()
    workbook.save(buffer)
    return buffer.getvalue()
