import argparse
import logging
import sys
import time
from datetime import datetime
from pathlib import Path

import matplotlib.pyplot as plt
import numpy as np

from orssa.data import (
    add_noise,
    clean_series,
    experimental_series,
    generate_sample_data,
    load_column,
    save_array,
    save_matrix,
    sine_with_trend,
)
from orssa.metrics import mse
from orssa.pipeline import run_or_ssa
from orssa.selector import SelectionConfig
from orssa.solver import BACKENDS
from orssa.ssa import baseline_top_r

plt.rcParams['font.family'] = 'DejaVu Sans'

logger = logging.getLogger("orssa")


def _finish_figure(fig, save_path, show):
    fig.tight_layout()
    fig.savefig(save_path, dpi=150, bbox_inches='tight')
    if show:
        plt.show()
    else:
        plt.close(fig)


def plot_orssa_results(result, original, title, save_path, show=True):
    fig, axes = plt.subplots(2, 2, figsize=(14, 9))
    fig.suptitle(title, fontsize=14, fontweight='bold')
    keep = result.selection.keep

    axes[0, 0].plot(original, 'b-', alpha=0.5, linewidth=1, label='Вихідний ряд')
    axes[0, 0].plot(result.reconstruction, 'r-', linewidth=1.5, label='OR-SSA реконструкція')
    axes[0, 0].set_title('Реконструкція з відібраних компонент')
    axes[0, 0].set_xlabel('Час')
    axes[0, 0].set_ylabel('Значення')
    axes[0, 0].legend()
    axes[0, 0].grid(True, alpha=0.3)

    n_bars = min(20, result.rank)
    colors = ['indianred' if keep[i] else 'steelblue' for i in range(n_bars)]
    axes[0, 1].bar(range(n_bars), result.contributions[:n_bars] * 100, color=colors)
    axes[0, 1].set_title('Внесок компонент (червоні – відібрані)')
    axes[0, 1].set_xlabel('Номер компоненти')
    axes[0, 1].set_ylabel('Внесок (%)')
    axes[0, 1].grid(True, alpha=0.3)

    for i in result.selection.selected:
        axes[1, 0].plot(result.components[i], linewidth=1, label=f'F{i}')
    axes[1, 0].set_title('Відібрані елементарні компоненти')
    axes[1, 0].set_xlabel('Час')
    if result.selection.num_selected:
        axes[1, 0].legend(ncol=2, fontsize=8)
    axes[1, 0].grid(True, alpha=0.3)

    residual = np.asarray(original) - result.reconstruction
    axes[1, 1].plot(residual, 'purple', linewidth=0.5)
    axes[1, 1].axhline(y=0, color='r', linestyle='--')
    axes[1, 1].set_title('Залишок (шум)')
    axes[1, 1].set_xlabel('Час')
    axes[1, 1].grid(True, alpha=0.3)

    _finish_figure(fig, save_path, show)


def plot_wcorr(wcorr, save_path, max_components=30, show=True):
    fig, ax = plt.subplots(figsize=(7, 6))
    n = min(max_components, wcorr.shape[0])
    image = ax.imshow(np.abs(wcorr[:n, :n]), cmap='Greys', vmin=0, vmax=1)
    fig.colorbar(image, ax=ax, label='|w-кореляція|')
    ax.set_title('Матриця w-кореляцій')
    ax.set_xlabel('Компонента')
    ax.set_ylabel('Компонента')
    _finish_figure(fig, save_path, show)


def plot_comparison(original, orssa_reconstructed, baseline_reconstructed, save_path,
                    clean=None, show=True):
    fig, ax = plt.subplots(figsize=(14, 6))

    if clean is not None:
        ax.plot(clean, color='forestgreen', linestyle='--', linewidth=1.5,
                label='Чистий ряд (без шуму)')
    ax.plot(original, color='gray', alpha=0.7, linewidth=1, label='Вихідний ряд')
    ax.plot(baseline_reconstructed, color='steelblue', linewidth=1.5, label='SSA (top-r)')
    ax.plot(orssa_reconstructed, color='indianred', linewidth=1.5, label='OR-SSA')
    ax.set_title('Порівняння методів: класичний SSA vs OR-SSA', fontsize=12)
    ax.set_xlabel('Час')
    ax.set_ylabel('Значення')
    ax.legend()
    ax.grid(True, alpha=0.3)

    _finish_figure(fig, save_path, show)


def _column(value):
    return int(value) if value.isdigit() else value


def parse_args(argv=None):
    parser = argparse.ArgumentParser(
        description='OR-SSA: SSA з відбором компонент цілочисельним програмуванням',
        formatter_class=argparse.RawDescriptionHelpFormatter
    )

    parser.add_argument('--data', type=str, default=None,
                        help='Шлях до CSV файлу з даними')
    parser.add_argument('--column', type=_column, default=0,
                        help='Номер (з нуля) або назва стовпця з даними в CSV (за замовчуванням: 0)')
    parser.add_argument('--dataset', choices=['sine', 'experimental', 'noise', 'sample'],
                        default='sine',
                        help='Штучний ряд, якщо --data не задано (за замовчуванням: sine)')
    parser.add_argument('--points', type=int, default=200,
                        help='Кількість точок для генерації тестових даних (за замовчуванням: 200)')
    parser.add_argument('--seed', type=int, default=12345,
                        help='Seed для генератора випадкових чисел (за замовчуванням: 12345)')
    parser.add_argument('--scale', type=float, default=1.0,
                        help='Масштаб чистого ряду для набору noise (за замовчуванням: 1.0)')
    parser.add_argument('--noise-sigma', type=float, default=0.5,
                        help='Амплітуда рівномірного шуму для набору noise (за замовчуванням: 0.5)')
    parser.add_argument('--window', type=int, default=None,
                        help='Довжина вікна L (за замовчуванням: N // 2)')
    parser.add_argument('--r-min', type=int, default=2,
                        help='Мінімальна кількість відібраних компонент (за замовчуванням: 2)')
    parser.add_argument('--r-max', type=int, default=6,
                        help='Максимальна кількість відібраних компонент (за замовчуванням: 6)')
    parser.add_argument('--lam', type=float, default=0.10,
                        help='Вага штрафу за надлишковість λ (за замовчуванням: 0.10)')
    parser.add_argument('--no-lock-pairs', action='store_true',
                        help='Не зчеплювати сусідні пари компонент (0,1), (2,3), ...')
    parser.add_argument('--time-limit', type=int, default=5,
                        help='Ліміт часу розв\'язувача, с (за замовчуванням: 5)')
    parser.add_argument('--workers', type=int, default=8,
                        help='Кількість потоків пошуку (за замовчуванням: 8)')
    parser.add_argument('--backend', choices=sorted(BACKENDS), default='highs',
                        help='Розв\'язувач: highs (scipy) або cpsat (OR-Tools)')
    parser.add_argument('--output-dir', type=str, default='results',
                        help='Директорія для збереження графіків та результатів (створюється автоматично)')
    parser.add_argument('--save-csv', action='store_true',
                        help='Зберегти реконструкцію та матрицю w-кореляцій у CSV')
    parser.add_argument('--no-plots', action='store_true',
                        help='Не показувати графіки (тільки зберегти)')
    parser.add_argument('-v', '--verbose', action='store_true',
                        help='Детальний журнал (рівень DEBUG)')

    return parser.parse_args(argv)


class TimeSeriesDataset:
    """
    Клас «Набір часових даних».

    Відповідає за завантаження та зберігання часового ряду, але не виконує
    жодних розрахунків. Для штучного ряду з шумом зберігає також чистий ряд.
    """

    def __init__(self, values, name="Без назви", units=None, source=None, clean=None):
        self.values = np.array(values, dtype=float)
        self.name = name
        self.units = units
        self.source = source
        self.clean = None if clean is None else np.array(clean, dtype=float)

    @classmethod
    def from_csv(cls, file_path, column=0, name=None, units=None):
        data = load_column(file_path, column)
        if name is None:
            name = f"Дані з файлу {file_path}"
        return cls(data, name=name, units=units, source="CSV файл")

    @classmethod
    def from_generator(cls, kind="sine", n_points=200, seed=12345, scale=1.0, sigma=0.5):
        if kind == "sine":
            return cls(sine_with_trend(n_points, seed),
                       name="Синус з трендом", source="Згенеровані дані")
        if kind == "experimental":
            return cls(experimental_series(n_points, seed),
                       name="Експериментальний ряд (злам тренду, викиди)",
                       source="Згенеровані дані")
        if kind == "noise":
            clean = clean_series(n_points, scale)
            return cls(add_noise(clean, sigma, seed),
                       name=f"Чистий ряд + шум σ={sigma}", source="Згенеровані дані",
                       clean=clean)
        if kind == "sample":
            series, *_ = generate_sample_data(n_points=n_points, seed=seed)
            return cls(series, name="Тестовий часовий ряд (погода)",
                       units="ум. од.", source="Згенеровані дані")
        raise ValueError(f"Невідомий тип штучного ряду: {kind}")


class OrSsaAnalyzer:
    """
    Обчислювальний блок OR-SSA: розкладання, метрики та відбір компонент
    розв'язувачем для заданого набору даних.
    """

    def __init__(self, dataset: TimeSeriesDataset, window_length: int, config: SelectionConfig):
        self.dataset = dataset
        self.window_length = window_length
        self.config = config
        self.result = None
        self.elapsed = None

    def analyze(self):
        start = time.perf_counter()
        self.result = run_or_ssa(self.dataset.values, self.window_length, self.config)
        self.elapsed = time.perf_counter() - start
        return self.result

    def plot(self, save_path, show=True):
        if self.result is None:
            self.analyze()
        plot_orssa_results(self.result, self.dataset.values,
                           f"OR-SSA: {self.dataset.name}", save_path, show=show)
        return save_path

    def plot_wcorr(self, save_path, show=True):
        if self.result is None:
            self.analyze()
        plot_wcorr(self.result.wcorr, save_path, show=show)
        return save_path


class BaselineAnalyzer:
    """
    Класичний SSA з тією ж кількістю компонент, що обрав розв'язувач
    (не менше 1 і не більше рангу) – для порівняння з OR-SSA.
    """

    def __init__(self, orssa: OrSsaAnalyzer):
        self.orssa = orssa
        self.r = None
        self.reconstruction = None
        self.elapsed = None

    def analyze(self):
        result = self.orssa.result if self.orssa.result is not None else self.orssa.analyze()
        start = time.perf_counter()
        self.r = min(max(1, result.selection.num_selected), result.rank)
        self.reconstruction = baseline_top_r(result.decomposition, self.r, result.components)
        self.elapsed = time.perf_counter() - start
        return self.reconstruction


class SelectionPipeline:
    """
    Головний керуючий блок: отримує дані (TimeSeriesDataset), запускає
    OR-SSA та базовий SSA і передає результати модулю візуалізації.
    """

    def __init__(self, dataset: TimeSeriesDataset, window_length: int,
                 config: SelectionConfig, output_dir="results"):
        self.dataset = dataset
        self.window_length = window_length
        self.config = config
        self.output_dir = Path(output_dir).expanduser()
        self.output_dir.mkdir(parents=True, exist_ok=True)

        self.orssa_analyzer = OrSsaAnalyzer(dataset, window_length, config)
        self.baseline_analyzer = BaselineAnalyzer(self.orssa_analyzer)

    def _write_run_info(self, command_info, result):
        """Протокол запуску: команда, дані, параметри відбору та його підсумок."""
        cfg = self.config
        sel = result.selection
        sections = {
            "Дані": [
                ("Набір", f"{self.dataset.name} ({self.dataset.source})"),
                ("N / L / K", f"{result.decomposition.N} / {self.window_length} / "
                              f"{result.decomposition.K}"),
                ("Ранг траєкторної матриці", result.rank),
            ],
            "Відбір компонент": [
                ("Діапазон r", f"[{cfg.r_min}, {cfg.r_max}]"),
                ("Штраф λ", cfg.lam),
                ("Зчеплення сусідніх пар", "так" if cfg.lock_adjacent_pairs else "ні"),
                ("Розв'язувач", f"{cfg.backend}, ліміт {cfg.time_limit} с, "
                                f"потоків {cfg.num_workers}"),
            ],
            "Підсумок": [
                ("Статус", sel.status.value),
                ("Ціль / межа", f"{sel.objective:.6f} / {sel.best_bound:.6f}"),
                ("Обрані компоненти", sel.selected.tolist()),
            ],
            "Аргументи командного рядка": sorted(command_info['args'].items()),
        }

        lines = [
            f"Запуск: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}",
            f"Команда: {command_info['command']}",
        ]
        for title, rows in sections.items():
            lines.append("")
            lines.append(f"[{title}]")
            lines.extend(f"  {key}: {value}" for key, value in rows)

        command_path = self.output_dir / "command.txt"
        command_path.write_text("\n".join(lines) + "\n", encoding='utf-8')
        return command_path

    def run(self, show_plots=True, command_info=None, save_csv=False):
        """
        Основний сценарій роботи програми:
        1) OR-SSA,
        2) базовий SSA з тим самим r,
        3) побудова та збереження графіків,
        4) збереження CSV та інформації про команду.
        """
        if show_plots is False:
            plt.ioff()

        result = self.orssa_analyzer.analyze()
        self.baseline_analyzer.analyze()

        paths = {
            "orssa": self.output_dir / "orssa_results.png",
            "wcorr": self.output_dir / "wcorr.png",
            "comparison": self.output_dir / "comparison.png",
        }
        if result.rank > 0:
            print(f"   Збереження графіків OR-SSA: {paths['orssa']}")
            self.orssa_analyzer.plot(paths["orssa"], show=show_plots)
            print(f"   Збереження матриці w-кореляцій: {paths['wcorr']}")
            self.orssa_analyzer.plot_wcorr(paths["wcorr"], show=show_plots)
        else:
            paths.pop("orssa")
            paths.pop("wcorr")
        print(f"   Збереження порівняння: {paths['comparison']}")
        plot_comparison(self.dataset.values, result.reconstruction,
                        self.baseline_analyzer.reconstruction, paths["comparison"],
                        clean=self.dataset.clean, show=show_plots)

        if save_csv:
            paths["reconstruction_csv"] = self.output_dir / "reconstruction.csv"
            paths["wcorr_csv"] = self.output_dir / "wcorr.csv"
            save_array(paths["reconstruction_csv"], result.reconstruction)
            save_matrix(paths["wcorr_csv"], result.wcorr)
            print(f"   Збережено CSV: {paths['reconstruction_csv']}, {paths['wcorr_csv']}")

        if command_info:
            paths["command"] = self._write_run_info(command_info, result)
            print(f"   Збережено інформацію про команду: {paths['command']}")

        return {
            "orssa_analyzer": self.orssa_analyzer,
            "baseline_analyzer": self.baseline_analyzer,
            "paths": paths,
        }


def main(argv=None):
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )

    full_command = ' '.join(sys.argv if argv is None else ['orssa', *argv])
    args_dict = dict(vars(args))

    print("=" * 70)
    print("OR-SSA: СИНГУЛЯРНИЙ СПЕКТРАЛЬНИЙ АНАЛІЗ (МЕТОД ГУСЕНИЦЯ)")
    print("З ВІДБОРОМ КОМПОНЕНТ ЦІЛОЧИСЕЛЬНИМ ПРОГРАМУВАННЯМ")
    print("=" * 70)
    print()

    # 1. Джерело даних
    print("1. ЗАВАНТАЖЕННЯ ДАНИХ")
    print("-" * 40)
    if args.data:
        print(f"   Завантаження з файлу: {args.data}")
        dataset = TimeSeriesDataset.from_csv(args.data, column=args.column,
                                             name="Користувацький часовий ряд",
                                             units="ум. од.")
        print(f"   Завантажено точок: {len(dataset.values)}")
    else:
        print(f"   Генерація тестових даних ({args.dataset})...")
        dataset = TimeSeriesDataset.from_generator(args.dataset, n_points=args.points,
                                                   seed=args.seed, scale=args.scale,
                                                   sigma=args.noise_sigma)
        print(f"   Згенеровано точок: {len(dataset.values)}")
        print(f"   Seed: {args.seed}")
    print()

    # 2. Налаштування
    N = len(dataset.values)
    window = args.window if args.window is not None else min(max(2, N // 2), N - 1)
    config = SelectionConfig(
        r_min=args.r_min,
        r_max=args.r_max,
        lam=args.lam,
        lock_adjacent_pairs=not args.no_lock_pairs,
        time_limit=args.time_limit,
        num_workers=args.workers,
        backend=args.backend,
    )
    try:
        config.validate()
    except ValueError as e:
        logger.error("Некоректна конфігурація відбору: %s", e)
        raise SystemExit(f"Некоректні параметри: {e}")

    print("2. НАЛАШТУВАННЯ ОБЧИСЛЮВАЛЬНИХ МОДУЛІВ")
    print("-" * 40)
    print(f"   Модуль SSA:")
    print(f"   - Довжина вікна (L): {window}")
    print(f"   - Розмір траєкторної матриці: {window} x {N - window + 1}")
    print()
    print(f"   Модуль відбору ({config.backend}):")
    print(f"   - r ∈ [{config.r_min}, {config.r_max}], λ = {config.lam}")
    print(f"   - Зчеплення пар: {'Так' if config.lock_adjacent_pairs else 'Ні'}")
    print(f"   - Ліміт часу: {config.time_limit} с, потоків: {config.num_workers}")
    print()

    # 3. Запуск конвеєра
    print("3. ЗАПУСК КОНВЕЄРА OR-SSA")
    print("-" * 40)
    pipeline = SelectionPipeline(dataset, window, config, output_dir=args.output_dir)
    try:
        results = pipeline.run(show_plots=not args.no_plots,
                               command_info={'command': full_command, 'args': args_dict},
                               save_csv=args.save_csv)
    except ValueError as e:
        logger.error("Конвеєр OR-SSA зупинено: %s", e)
        raise SystemExit(f"Помилка: {e}")

    # 4. Резюме
    print()
    print("4. КОРОТКИЙ ОПИС РЕЗУЛЬТАТІВ")
    print("-" * 40)
    orssa = results["orssa_analyzer"]
    baseline = results["baseline_analyzer"]
    result = orssa.result
    sel = result.selection

    print(f"   N={N}, L={window}, Ранг={result.rank}")
    print("   Внесок перших 10 компонент:")
    for i, c in enumerate(result.contributions[:10]):
        mark = " *" if sel.keep[i] else ""
        print(f"   Компонента {i + 1}: {c * 100:.2f}%{mark}")
    print()
    print(f"   Розв'язувач: {sel.status.value} | Ціль={sel.objective:.6f} | "
          f"Конфлікти={sel.num_conflicts} | Гілки={sel.num_branches} | {sel.wall_time:.3f}s")
    print(f"   Відібрані компоненти: {sel.selected.tolist()}")

    mse_or = mse(dataset.values, result.reconstruction)
    mse_base = mse(dataset.values, baseline.reconstruction)
    print(f"   SSA    : r={baseline.r} | MSE={mse_base:.6f} | {baseline.elapsed:.3f}s")
    print(f"   OR-SSA : r={sel.num_selected} | MSE={mse_or:.6f} | {orssa.elapsed:.3f}s")
    if dataset.clean is not None:
        print(f"   MSE відносно чистого ряду: SSA={mse(dataset.clean, baseline.reconstruction):.6f}, "
              f"OR-SSA={mse(dataset.clean, result.reconstruction):.6f}")

    print()
    print("=" * 70)
    print("Аналіз завершено!")
    print("=" * 70)

    return results


if __name__ == "__main__":
    main()
