"""Target Dodge logic - shot density field, dodging agents and the genetic algorithm"""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Iterator, List, Optional, Sequence, Tuple

import numpy as np

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

Point = Tuple[float, float]
GeneRange = Tuple[float, float]


@dataclass
class DodgeConfig:
    """All tunable constants of the simulation.

    The defaults reproduce the shooting-gallery game: an 800x600 field,
    shots fired from the bottom-left corner and targets spawning in the
    right-hand part of the field.
    """

    # Field
    field_width: int = 800
    field_height: int = 600
    agent_radius: float = 30.0
    spawn_x_offset: float = 400.0
    spawn_x_margin: float = 100.0
    spawn_y_offset: float = 100.0
    spawn_y_margin: float = 100.0

    # Movement model
    max_move: float = 10.0
    threat_radius: float = 200.0
    memory_radius: float = 100.0
    memory_ticks: int = 1
    jitter_scale: float = 8.0
    avoidance_scale: float = 18.0
    hot_zone_scale: float = 8.0
    memory_scale: float = 6.0
    # jitter, avoidance, hot zone, memory
    fallback_weights: Tuple[float, ...] = (0.5, 1.0, 1.0, 1.0)

    # Fitness shaping
    survival_bonus: float = 1.0
    close_call_radius: float = 100.0
    close_call_reward: float = 8.0
    close_call_offset: float = 10.0
    cluster_distance_sq: float = 1200.0
    cluster_penalty: float = 0.5
    movement_cost: float = 0.2
    death_penalty: float = 10.0

    # Shot density (half width of the square sampling window, in cells)
    density_window: int = 10

    # Projectiles
    drag: float = 0.99
    gravity: float = 0.68
    min_speed: float = 5.0
    max_speed: float = 38.0

    # Evolution
    gene_count: int = 3
    gene_ranges: Tuple[GeneRange, ...] = ((0.0, 1.0), (-2.0, 2.0), (-2.0, 2.0))
    default_gene_range: GeneRange = (-2.0, 2.0)
    mutation_rate: float = 0.30
    mutation_strength: float = 0.35
    elite_count: int = 3
    tournament_size: int = 3
    initial_population: int = 10
    population_growth: int = 1
    max_population: int = 60
    auto_restart: bool = True

    # AI-only training
    shot_interval: int = 20
    min_shot_power: float = 0.3

    def __post_init__(self):
        if self.field_width <= 0 or self.field_height <= 0:
            raise ValueError(
                f"Field dimensions must be positive, got {self.field_width}x{self.field_height}"
            )
        if self.agent_radius <= 0:
            raise ValueError("agent_radius must be positive.")
        if self.max_move <= 0:
            raise ValueError("max_move must be positive.")
        if self.initial_population < 1:
            raise ValueError("initial_population must be at least 1.")
        if self.elite_count < 0:
            raise ValueError("elite_count must not be negative.")
        if self.tournament_size < 1:
            raise ValueError("tournament_size must be at least 1.")
        if self.density_window < 0:
            raise ValueError("density_window must not be negative.")
        if self.population_growth < 0:
            raise ValueError("population_growth must not be negative.")
        if self.max_population < 1:
            raise ValueError("max_population must be at least 1.")
        if self.shot_interval < 1:
            raise ValueError("shot_interval must be at least 1.")

    def gene_range(self, index: int) -> GeneRange:
        if index < len(self.gene_ranges):
            return self.gene_ranges[index]
        return self.default_gene_range

    def fallback_weight(self, index: int) -> float:
        if index < len(self.fallback_weights):
            return self.fallback_weights[index]
        return 1.0

    @property
    def shooter_origin(self) -> Point:
        return 0.0, float(self.field_height)


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


# ---------------------------------------------------------------------------
# Genome
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Genome:
    """Immutable vector of behaviour weights.

    Gene 0 scales random jitter, gene 1 avoidance of live shots, gene 2
    avoidance of historical hot zones and an optional gene 3 the short-term
    memory dodge. Ranges are only enforced when mutating.
    """

    genes: Tuple[float, ...]

    def __post_init__(self):
        object.__setattr__(self, "genes", tuple(float(g) for g in self.genes))

    @classmethod
    def random(cls, rng: np.random.Generator, gene_count: int = 3) -> Genome:
        return cls(tuple(rng.random(gene_count)))

    def __len__(self) -> int:
        return len(self.genes)

    def gene(self, index: int, default: float) -> float:
        if index < len(self.genes):
            return self.genes[index]
        return default

    def clone(self) -> Genome:
        return Genome(self.genes)


# ---------------------------------------------------------------------------
# Shot history
# ---------------------------------------------------------------------------

class ShotDensityField:
    """Impact counters on a width x height grid, one cell per field unit.

    ``density_at`` returns the mean count over a (2 * window + 1) square
    neighbourhood clipped to the grid, a smoothed repulsion signal rather
    than the raw per-cell count. The raw impact coordinates are kept in
    recording order as well.
    """

    def __init__(self, width: int, height: int, window: int = 10):
        if width <= 0 or height <= 0:
            raise ValueError(f"Field dimensions must be positive, got {width}x{height}")
        self.width = int(width)
        self.height = int(height)
        self.window = int(window)
        self.counts = np.zeros((self.width, self.height), dtype=np.int32)
        self._impacts: List[Tuple[int, int]] = []

    def clear(self):
        self.counts.fill(0)
        self._impacts.clear()

    def in_bounds(self, cx: int, cy: int) -> bool:
        return 0 <= cx < self.width and 0 <= cy < self.height

    def record(self, x: float, y: float) -> bool:
        """Add one impact at the cell containing (x, y). Out of bounds is a no-op."""
        cx, cy = int(math.floor(x)), int(math.floor(y))
        if not self.in_bounds(cx, cy):
            return False
        self.counts[cx, cy] += 1
        self._impacts.append((cx, cy))
        return True

    def density_at(self, x: float, y: float) -> float:
        cx = int(_clamp(math.floor(x), 0, self.width - 1))
        cy = int(_clamp(math.floor(y), 0, self.height - 1))
        w = self.window
        window = self.counts[
            max(cx - w, 0): min(cx + w + 1, self.width),
            max(cy - w, 0): min(cy + w + 1, self.height),
        ]
        if window.size == 0:
            return 0.0
        return float(window.mean())

    def impacts(self) -> Tuple[Tuple[int, int], ...]:
        return tuple(self._impacts)

    @property
    def total_impacts(self) -> int:
        return len(self._impacts)


# ---------------------------------------------------------------------------
# Projectiles
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Projectile:
    """Ballistic point mass. Advancing returns a new projectile."""

    x: float
    y: float
    vx: float
    vy: float

    @classmethod
    def aimed(cls, origin_x: float, origin_y: float, target_x: float, target_y: float, speed: float) -> Projectile:
        dx = target_x - origin_x
        dy = target_y - origin_y
        dist = math.hypot(dx, dy)
        if dist == 0:
            dist = 1.0
        return cls(float(origin_x), float(origin_y), dx / dist * speed, dy / dist * speed)

    def advanced(self, drag: float, gravity: float) -> Projectile:
        vx = self.vx * drag
        vy = self.vy * drag + gravity
        return Projectile(self.x + vx, self.y + vy, vx, vy)

    def in_field(self, width: float, height: float) -> bool:
        return 0 <= self.x <= width and 0 <= self.y <= height

    def distance_to(self, x: float, y: float) -> float:
        return math.hypot(self.x - x, self.y - y)


def speed_for_power(power: float, config: DodgeConfig) -> float:
    """Map a charge level in [0, 1] onto the shot speed range."""
    power = _clamp(float(power), 0.0, 1.0)
    return config.min_speed + (config.max_speed - config.min_speed) * power


def predict_trajectory(origin: Point, target: Point, power: float, config: DodgeConfig, steps: int = 60) -> List[Point]:
    """Points a shot would pass through, stopping once it leaves the field."""
    shot = Projectile.aimed(origin[0], origin[1], target[0], target[1], speed_for_power(power, config))
    points: List[Point] = []
    for _ in range(steps):
        shot = shot.advanced(config.drag, config.gravity)
        if not shot.in_field(config.field_width, config.field_height):
            break
        points.append((shot.x, shot.y))
    return points


# ---------------------------------------------------------------------------
# Agents
# ---------------------------------------------------------------------------

@dataclass
class ThreatMemory:
    threat: Optional[Point] = None
    age: int = 0
    last_move: Point = (0.0, 0.0)


@dataclass(frozen=True)
class AgentSnapshot:
    index: int
    x: float
    y: float
    radius: float
    alive: bool
    fitness: float
    genes: Tuple[float, ...]
    ticks_since_hit: Optional[int]


def spawn_position(rng: np.random.Generator, config: DodgeConfig) -> Point:
    x_span = max(1.0, config.field_width - config.spawn_x_offset - config.spawn_x_margin)
    y_span = max(1.0, config.field_height - config.spawn_y_offset - config.spawn_y_margin)
    x = config.spawn_x_offset + rng.random() * x_span
    y = config.spawn_y_offset + rng.random() * y_span
    r = config.agent_radius
    return _clamp(x, r, config.field_width - r), _clamp(y, r, config.field_height - r)


class Agent:
    """An evolving target that tries to stay alive under fire."""

    def __init__(self, genome: Genome, x: float, y: float, rng: np.random.Generator, config: Optional[DodgeConfig] = None):
        self.genome = genome
        self.config = config or DodgeConfig()
        self.rng = rng
        self.radius = float(self.config.agent_radius)
        self.x = float(x)
        self.y = float(y)
        self.fitness = 0.0
        self.alive = True
        self.memory = ThreatMemory()
        self.last_move_distance = 0.0
        self.ticks_since_hit: Optional[int] = None

    @classmethod
    def spawn(cls, genome: Genome, rng: np.random.Generator, config: DodgeConfig) -> Agent:
        x, y = spawn_position(rng, config)
        return cls(genome, x, y, rng, config)

    def reset(self):
        """Start a new round: fresh spawn point, zero fitness, empty memory."""
        self.x, self.y = spawn_position(self.rng, self.config)
        self.fitness = 0.0
        self.alive = True
        self.memory = ThreatMemory()
        self.last_move_distance = 0.0
        self.ticks_since_hit = None

    def weights(self) -> Tuple[float, float, float, float]:
        cfg = self.config
        jitter, avoid, history, memo = (self.genome.gene(i, cfg.fallback_weight(i)) for i in range(4))
        return _clamp(jitter, 0.0, 1.0), avoid, history, memo

    def add_fitness(self, value: float):
        self.fitness += value

    # --- movement -----------------------------------------------------------

    def threat_avoidance(self, projectiles: Sequence[Projectile]) -> Point:
        """Unscaled repulsion from every live shot inside the threat radius."""
        limit = self.config.threat_radius ** 2
        ax = ay = 0.0
        for p in projectiles:
            dx = self.x - p.x
            dy = self.y - p.y
            dist2 = dx * dx + dy * dy
            if dist2 < limit:
                ax += dx / (dist2 + 1)
                ay += dy / (dist2 + 1)
        return ax, ay

    def remember_nearest(self, projectiles: Sequence[Projectile]):
        nearest = min(projectiles, key=lambda p: p.distance_to(self.x, self.y), default=None)
        if nearest is not None:
            self.memory.threat = (nearest.x, nearest.y)
            self.memory.age = 0
        elif self.memory.threat is not None:
            self.memory.age += 1

    def memory_dodge(self) -> Point:
        """Unit vector away from the remembered threat, if it is fresh and close."""
        threat = self.memory.threat
        if threat is None or self.memory.age > self.config.memory_ticks:
            return 0.0, 0.0
        dx = self.x - threat[0]
        dy = self.y - threat[1]
        dist = math.hypot(dx, dy)
        if 0 < dist < self.config.memory_radius:
            return dx / dist, dy / dist
        return 0.0, 0.0

    def update(self, projectiles: Sequence[Projectile], shot_field: Optional[ShotDensityField]) -> Point:
        """Move one tick and return the applied (clamped) movement vector."""
        if not self.alive:
            return 0.0, 0.0
        cfg = self.config
        w_jitter, w_avoid, w_history, w_memory = self.weights()

        jitter_x = (self.rng.random() - 0.5) * w_jitter * cfg.jitter_scale
        jitter_y = (self.rng.random() - 0.5) * w_jitter * cfg.jitter_scale

        avoid_x, avoid_y = self.threat_avoidance(projectiles)
        avoid_x *= w_avoid * cfg.avoidance_scale
        avoid_y *= w_avoid * cfg.avoidance_scale

        # random heading weighted by local density, not the density gradient
        density = shot_field.density_at(self.x, self.y) if shot_field is not None else 0.0
        angle = self.rng.random() * 2 * math.pi
        history_x = math.cos(angle) * w_history * density * cfg.hot_zone_scale
        history_y = math.sin(angle) * w_history * density * cfg.hot_zone_scale

        self.remember_nearest(projectiles)
        memo_x, memo_y = self.memory_dodge()
        memo_x *= w_memory * cfg.memory_scale
        memo_y *= w_memory * cfg.memory_scale

        move_x = jitter_x + avoid_x + history_x + memo_x
        move_y = jitter_y + avoid_y + history_y + memo_y
        magnitude = math.hypot(move_x, move_y)
        if magnitude > cfg.max_move:
            move_x = move_x / magnitude * cfg.max_move
            move_y = move_y / magnitude * cfg.max_move
        self.last_move_distance = min(magnitude, cfg.max_move)
        self.memory.last_move = (move_x, move_y)

        self.x, self.y = self.clamp_to_field(self.x + move_x, self.y + move_y)
        return move_x, move_y

    def clamp_to_field(self, x: float, y: float) -> Point:
        cfg = self.config
        return (
            _clamp(x, self.radius, cfg.field_width - self.radius),
            _clamp(y, self.radius, cfg.field_height - self.radius),
        )

    # --- hits -----------------------------------------------------------------

    def is_hit(self, shot_x: float, shot_y: float) -> bool:
        dx = self.x - shot_x
        dy = self.y - shot_y
        return self.alive and dx * dx + dy * dy <= self.radius * self.radius

    def die(self):
        if not self.alive:
            return
        self.alive = False
        self.fitness -= self.config.death_penalty
        self.ticks_since_hit = 0

    def retire(self):
        """Leave the round without being hit (round aborted)."""
        self.alive = False

    def advance_hit_timer(self):
        if self.ticks_since_hit is not None:
            self.ticks_since_hit += 1

    # --- fitness shaping --------------------------------------------------------

    def close_call_bonus(self, projectiles: Sequence[Projectile]) -> float:
        cfg = self.config
        bonus = 0.0
        for p in projectiles:
            dist = p.distance_to(self.x, self.y)
            if self.radius < dist < cfg.close_call_radius:
                bonus += cfg.close_call_reward / (dist + cfg.close_call_offset)
        return bonus

    def crowding_penalty(self, others: Sequence[Agent]) -> float:
        cfg = self.config
        crowded = 0
        for other in others:
            if other is self or not other.alive:
                continue
            dx = self.x - other.x
            dy = self.y - other.y
            if dx * dx + dy * dy < cfg.cluster_distance_sq:
                crowded += 1
        return crowded * cfg.cluster_penalty

    def hot_zone_bonus(self, shot_field: Optional[ShotDensityField]) -> float:
        density = shot_field.density_at(self.x, self.y) if shot_field is not None else 0.0
        return 1.0 / (1.0 + density)

    def shape_fitness(
        self,
        projectiles: Sequence[Projectile],
        others: Sequence[Agent],
        shot_field: Optional[ShotDensityField],
    ) -> float:
        """Apply this tick's fitness terms and return their sum. Dead agents earn nothing."""
        if not self.alive:
            return 0.0
        cfg = self.config
        delta = (
            cfg.survival_bonus
            + self.close_call_bonus(projectiles)
            - self.crowding_penalty(others)
            - cfg.movement_cost * self.last_move_distance
            + self.hot_zone_bonus(shot_field)
        )
        self.fitness += delta
        return delta

    def snapshot(self, index: int) -> AgentSnapshot:
        return AgentSnapshot(
            index=index,
            x=self.x,
            y=self.y,
            radius=self.radius,
            alive=self.alive,
            fitness=self.fitness,
            genes=self.genome.genes,
            ticks_since_hit=self.ticks_since_hit,
        )


# ---------------------------------------------------------------------------
# Population
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class GenerationStats:
    generation: int
    size: int
    mean_fitness: float
    std_fitness: float
    best_fitness: float
    best_genes: Tuple[float, ...]


def rank_by_fitness(agents: Sequence[Agent]) -> List[Agent]:
    """Agents sorted fittest first; ties keep their original order."""
    return sorted(agents, key=lambda a: a.fitness, reverse=True)


class Population:
    """Ordered agents of one generation sharing one shot density field."""

    def __init__(self, agents: Sequence[Agent], shot_field: ShotDensityField, generation: int = 1):
        if not agents:
            raise ValueError("Population must contain at least one agent.")
        self.agents: List[Agent] = list(agents)
        self.shot_field = shot_field
        self.generation = int(generation)

    @classmethod
    def from_genomes(cls, genomes: Sequence[Genome], rng: np.random.Generator, config: DodgeConfig, generation: int = 1) -> Population:
        agents = [Agent.spawn(g, rng, config) for g in genomes]
        field = ShotDensityField(config.field_width, config.field_height, config.density_window)
        return cls(agents, field, generation)

    @classmethod
    def random(cls, size: int, rng: np.random.Generator, config: DodgeConfig, generation: int = 1) -> Population:
        genomes = [Genome.random(rng, config.gene_count) for _ in range(size)]
        return cls.from_genomes(genomes, rng, config, generation)

    def __len__(self) -> int:
        return len(self.agents)

    def __iter__(self) -> Iterator[Agent]:
        return iter(self.agents)

    def __getitem__(self, index: int) -> Agent:
        return self.agents[index]

    def reset(self):
        for agent in self.agents:
            agent.reset()
        self.shot_field.clear()

    def alive(self) -> List[Agent]:
        return [a for a in self.agents if a.alive]

    def any_alive(self) -> bool:
        return any(a.alive for a in self.agents)

    def ranked(self) -> List[Agent]:
        return rank_by_fitness(self.agents)

    def statistics(self) -> GenerationStats:
        fitness = np.array([a.fitness for a in self.agents], dtype=np.float64)
        best = self.ranked()[0]
        return GenerationStats(
            generation=self.generation,
            size=len(self.agents),
            mean_fitness=float(fitness.mean()),
            std_fitness=float(fitness.std()),
            best_fitness=best.fitness,
            best_genes=best.genome.genes,
        )


# ---------------------------------------------------------------------------
# Genetic algorithm
# ---------------------------------------------------------------------------

class EvolutionEngine:
    """Elitism, tournament selection, uniform crossover and Gaussian mutation.

    The only state is the random generator, so a seeded generator makes
    every call reproducible.
    """

    def __init__(self, rng: np.random.Generator, config: Optional[DodgeConfig] = None):
        self.rng = rng
        self.config = config or DodgeConfig()

    def tournament_select(self, ranked: Sequence[Agent]) -> Agent:
        best: Optional[Agent] = None
        for _ in range(self.config.tournament_size):
            candidate = ranked[int(self.rng.integers(len(ranked)))]
            if best is None or candidate.fitness > best.fitness:
                best = candidate
        return best

    def crossover(self, first: Genome, second: Genome) -> Genome:
        """Uniform crossover. Genes only one parent carries come from that parent."""
        shared = min(len(first), len(second))
        picks = self.rng.random(shared) < 0.5
        genes = [a if pick else b for a, b, pick in zip(first.genes, second.genes, picks)]
        longer = first if len(first) > len(second) else second
        genes.extend(longer.genes[shared:])
        return Genome(tuple(genes))

    def mutate(self, genome: Genome) -> Genome:
        cfg = self.config
        genes = list(genome.genes)
        for i, value in enumerate(genes):
            if self.rng.random() < cfg.mutation_rate:
                value += self.rng.normal(0.0, cfg.mutation_strength)
            low, high = cfg.gene_range(i)
            genes[i] = _clamp(float(value), low, high)
        return Genome(tuple(genes))

    def next_generation(self, agents: Sequence[Agent], size: int) -> List[Genome]:
        """Genomes for the next generation, exactly ``size`` of them.

        The top ``elite_count`` genomes are carried over unchanged; the rest
        are mutated children of two tournament winners.
        """
        if size < 1:
            raise ValueError(f"Requested generation size must be at least 1, got {size}.")
        if not agents:
            raise ValueError("Cannot evolve an empty population.")
        ranked = rank_by_fitness(agents)
        elite = min(self.config.elite_count, len(ranked), size)
        genomes = [agent.genome.clone() for agent in ranked[:elite]]
        while len(genomes) < size:
            mother = self.tournament_select(ranked)
            father = self.tournament_select(ranked)
            genomes.append(self.mutate(self.crossover(mother.genome, father.genome)))
        return genomes


# ---------------------------------------------------------------------------
# Round orchestration
# ---------------------------------------------------------------------------

class RoundState(Enum):
    IDLE = "idle"
    RUNNING = "running"


@dataclass(frozen=True)
class TickReport:
    tick: int
    generation: int
    hits: Tuple[int, ...]
    round_over: bool


class RoundController:
    """Owns the population, the live shots and the round lifecycle.

    Each ``tick`` advances shots, moves agents, resolves hits, shapes
    fitness and checks for the end of the round, in that order. When the
    last agent dies the next generation is bred and, with ``auto_restart``,
    its first round starts immediately.
    """

    def __init__(self, rng: np.random.Generator, config: Optional[DodgeConfig] = None, population_size: Optional[int] = None):
        self.config = config or DodgeConfig()
        self.rng = rng
        self.engine = EvolutionEngine(rng, self.config)
        size = self.config.initial_population if population_size is None else int(population_size)
        if size < 1:
            raise ValueError(f"Population size must be at least 1, got {size}.")
        self.target_size = size
        self.population = Population.random(size, rng, self.config)
        self.state = RoundState.IDLE
        self.projectiles: List[Projectile] = []
        self.tick_count = 0
        self.shots_fired = 0
        self.history: List[GenerationStats] = []

    @property
    def shot_field(self) -> ShotDensityField:
        return self.population.shot_field

    def generation_index(self) -> int:
        return self.population.generation

    def is_round_active(self) -> bool:
        return self.state is RoundState.RUNNING

    def current_population(self) -> Tuple[AgentSnapshot, ...]:
        return tuple(agent.snapshot(i) for i, agent in enumerate(self.population))

    def active_projectiles(self) -> Tuple[Projectile, ...]:
        return tuple(self.projectiles)

    def start_round(self):
        self.population.reset()
        self.projectiles = []
        self.tick_count = 0
        self.shots_fired = 0
        self.state = RoundState.RUNNING
        logger.debug(f"Round started for generation {self.population.generation} with {len(self.population)} agents")

    def spawn_projectile(self, origin_x: float, origin_y: float, target_x: float, target_y: float, speed: float) -> Projectile:
        cfg = self.config
        origin_x = _clamp(float(origin_x), 0.0, float(cfg.field_width))
        origin_y = _clamp(float(origin_y), 0.0, float(cfg.field_height))
        shot = Projectile.aimed(origin_x, origin_y, target_x, target_y, speed)
        self.projectiles.append(shot)
        self.shots_fired += 1
        return shot

    def fire_with_power(self, target_x: float, target_y: float, power: float) -> Projectile:
        origin_x, origin_y = self.config.shooter_origin
        return self.spawn_projectile(origin_x, origin_y, target_x, target_y, speed_for_power(power, self.config))

    def tick(self) -> TickReport:
        generation = self.population.generation
        if self.state is not RoundState.RUNNING:
            return TickReport(self.tick_count, generation, (), False)
        self.tick_count += 1
        for agent in self.population:
            agent.advance_hit_timer()

        self._advance_projectiles()
        shots = tuple(self.projectiles)
        for agent in self.population:
            agent.update(shots, self.shot_field)
        hits = self._resolve_hits(shots)
        self._shape_fitness(shots)

        tick = self.tick_count
        round_over = not self.population.any_alive()
        if round_over:
            self._finish_round()
        return TickReport(tick, generation, hits, round_over)

    def abort_round(self) -> Optional[GenerationStats]:
        """End the running round as if every agent had died, then evolve."""
        if self.state is not RoundState.RUNNING:
            return None
        for agent in self.population:
            agent.retire()
        return self._finish_round()

    def _advance_projectiles(self):
        cfg = self.config
        remaining: List[Projectile] = []
        for shot in self.projectiles:
            shot = shot.advanced(cfg.drag, cfg.gravity)
            if shot.in_field(cfg.field_width, cfg.field_height):
                remaining.append(shot)
            else:
                # landing point, pulled back onto the field
                self.shot_field.record(
                    _clamp(shot.x, 0.0, cfg.field_width - 1),
                    _clamp(shot.y, 0.0, cfg.field_height - 1),
                )
        self.projectiles = remaining

    def _resolve_hits(self, shots: Sequence[Projectile]) -> Tuple[int, ...]:
        hits: List[int] = []
        for shot in shots:
            for index, agent in enumerate(self.population):
                if agent.is_hit(shot.x, shot.y):
                    agent.die()
                    self.shot_field.record(shot.x, shot.y)
                    hits.append(index)
                    logger.debug(f"Agent {index} hit at ({shot.x:.1f}, {shot.y:.1f})")
        return tuple(hits)

    def _shape_fitness(self, shots: Sequence[Projectile]):
        survivors = self.population.alive()
        for agent in survivors:
            agent.shape_fitness(shots, survivors, self.shot_field)

    def _finish_round(self) -> GenerationStats:
        cfg = self.config
        self.state = RoundState.IDLE
        stats = self.population.statistics()
        self.history.append(stats)
        genes = ", ".join(f"{g:.2f}" for g in stats.best_genes)
        logger.info(
            f"Generation {stats.generation} - Avg fitness: {stats.mean_fitness:.2f}, "
            f"Std dev: {stats.std_fitness:.2f}, Best: {stats.best_fitness:.2f}, Genome: [{genes}]"
        )
        genomes = self.engine.next_generation(self.population.agents, self.target_size)
        self.population = Population.from_genomes(genomes, self.rng, cfg, stats.generation + 1)
        self.target_size = min(self.target_size + cfg.population_growth, max(cfg.max_population, self.target_size))
        self.projectiles = []
        if cfg.auto_restart:
            self.start_round()
        return stats


# ---------------------------------------------------------------------------
# AI-only training
# ---------------------------------------------------------------------------

class RandomShooter:
    """Stands in for the player: fires at random points every few ticks."""

    # fraction of the field kept clear of aim points on each side (x, y)
    AIM_MARGIN = (0.125, 1.0 / 12.0)

    def __init__(self, rng: np.random.Generator, config: Optional[DodgeConfig] = None):
        self.rng = rng
        self.config = config or DodgeConfig()

    def aim_point(self) -> Point:
        cfg = self.config
        mx, my = self.AIM_MARGIN
        x = self.rng.uniform(cfg.field_width * mx, cfg.field_width * (1 - mx))
        y = self.rng.uniform(cfg.field_height * my, cfg.field_height * (1 - my))
        return float(x), float(y)

    def fire(self, controller: RoundController) -> Projectile:
        x, y = self.aim_point()
        power = float(self.rng.uniform(self.config.min_shot_power, 1.0))
        return controller.fire_with_power(x, y, power)

    def maybe_fire(self, controller: RoundController) -> Optional[Projectile]:
        if not controller.is_round_active():
            return None
        if controller.tick_count % self.config.shot_interval != 0:
            return None
        return self.fire(controller)


class TrainingSession:
    def __init__(self, controller: RoundController, shooter: RandomShooter):
        self.controller = controller
        self.shooter = shooter

    def play_round(self, max_ticks: int) -> GenerationStats:
        """Play one round to its end and return the statistics of that generation."""
        controller = self.controller
        if not controller.is_round_active():
            controller.start_round()
        generation = controller.generation_index()
        for _ in range(max_ticks):
            self.shooter.maybe_fire(controller)
            report = controller.tick()
            if report.round_over:
                return controller.history[-1]
        logger.warning(f"Generation {generation} reached the {max_ticks} tick limit, aborting round")
        return controller.abort_round()

    def run(
        self,
        generations: int,
        max_ticks: int = 2000,
        callback: Optional[Callable[[GenerationStats], None]] = None,
    ) -> List[GenerationStats]:
        results: List[GenerationStats] = []
        for _ in range(generations):
            stats = self.play_round(max_ticks)
            results.append(stats)
            if callback is not None:
                callback(stats)
        return results
