# adaptive_crawler/report/json_report.py

"""
Генерация JSON-отчёта по итогам обхода.

Сериализация объекта RunReport в файл.
"""
from pathlib import Path

from adaptive_crawler.aggregator import RunReport


def render_json(report: RunReport, output_path: Path | str, *, pretty: bool = True) -> Path:
    """
    Сохраняет отчёт report в формате JSON по указанному пути.

    :param report: объект RunReport с итогами обхода
    :param output_path: путь к JSON-файлу
    :param pretty: отступ 2 вместо компактного вывода
    :return: Path сохранённого файла
    """
    output = Path(output_path)
    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_text(report.json(pretty=pretty), encoding='utf-8')
    return output
