import argparse
import logging
from typing import List, Optional, Sequence

import numpy as np
from matplotlib.figure import Figure

from dodge_logic import (
    DodgeConfig,
    GenerationStats,
    RandomShooter,
    RoundController,
    TrainingSession,
)

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Evolve dodging targets against simulated fire (no window).")
    parser.add_argument("--generations", type=int, default=50, help="number of generations to evolve")
    parser.add_argument("--population", type=int, default=20, help="initial population size")
    parser.add_argument("--growth", type=int, default=0, help="agents added to the population each generation")
    parser.add_argument("--max-population", type=int, default=60)
    parser.add_argument("--max-ticks", type=int, default=2000, help="tick limit before a round is aborted")
    parser.add_argument("--shot-interval", type=int, default=20, help="ticks between simulated shots")
    parser.add_argument("--seed", type=int, default=None)
    parser.add_argument("--plot", type=str, default=None, help="save a fitness plot to this PNG file")
    return parser


def moving_average(values: Sequence[float], window: int = 5) -> List[float]:
    if len(values) < window:
        return []
    arr = np.array(values, dtype=np.float64)
    kernel = np.ones(window, dtype=np.float64) / window
    return np.convolve(arr, kernel, mode="valid").tolist()


def plot_history(history: Sequence[GenerationStats], path: str) -> Figure:
    fig = Figure(figsize=(6, 3), dpi=100)
    ax = fig.add_subplot(111)
    generations = [s.generation for s in history]
    means = [s.mean_fitness for s in history]
    ax.plot(generations, means, color="#9ecae1", lw=1, label="avg fitness")
    ax.plot(generations, [s.best_fitness for s in history], color="#fdae6b", lw=1, label="best fitness")
    ma = moving_average(means)
    if ma:
        ax.plot(generations[len(means) - len(ma):], ma, color="#08519c", lw=2, label="avg (moving)")
    ax.set_title("Fitness per Generation")
    ax.set_xlabel("Generation")
    ax.set_ylabel("Fitness")
    ax.legend()
    fig.tight_layout()
    fig.savefig(path)
    return fig


def train(argv: Optional[Sequence[str]] = None) -> List[GenerationStats]:
    args = build_parser().parse_args(argv)
    config = DodgeConfig(
        initial_population=args.population,
        population_growth=args.growth,
        max_population=args.max_population,
        shot_interval=args.shot_interval,
    )
    rng = np.random.default_rng(args.seed)
    controller = RoundController(rng, config)
    session = TrainingSession(controller, RandomShooter(rng, config))
    history = session.run(args.generations, max_ticks=args.max_ticks)

    if not history:
        return history
    best = max(history, key=lambda s: s.best_fitness)
    logger.info(f"Best fitness {best.best_fitness:.2f} in generation {best.generation}, genome {list(best.best_genes)}")
    if args.plot:
        plot_history(history, args.plot)
        logger.info(f"Saved plot to {args.plot}")
    return history


def main():
    train()


if __name__ == "__main__":
    main()
