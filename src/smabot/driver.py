# src/smabot/driver.py
"""
Driver de la simulación en tiempo real (superficie de control).

Responsabilidad
---------------
Mantener UNA sesión activa (instrumento + PriceSeries + PortfolioState) y
avanzarla con un tick cada `interval_s` segundos en un hilo propio.

Interfaz
--------
start()                  : arranca el loop (no-op si ya está corriendo).
stop()                   : para el loop y espera a que termine.
tick()                   : un tick manual (el loop usa el mismo método).
set_strategy(**changes)  : cambia parámetros; rechazado mientras corre.
select_instrument(sym)   : reset completo a otro instrumento (para el loop).
reset()                  : reset completo del instrumento actual.
get_snapshot()           : vista inmutable del estado actual.
request_commentary()     : pide comentario de mercado en segundo plano.
close()                  : stop + apagar el pool del proveedor.

Concurrencia
------------
- Un único `threading.RLock` cubre cada tick completo y cada reset: un tick
  nunca ve un reset a medias y dos ticks nunca se solapan.
- Un segundo lock de control serializa start/stop/reset entre sí: un
  start() concurrente con un reset espera a que la sesión nueva esté
  lista. El hilo del loop nunca lo toma, así que stop() puede hacer join.
- El estado de la sesión se sustituye entero al final del tick (par
  inmutable serie/cartera); si el tick falla, se conserva el par anterior.
- Cualquier excepción dentro del loop se loguea, se guarda en `last_error`
  y detiene el loop.
- El comentario de mercado corre en un `ThreadPoolExecutor` de un worker;
  su resultado se descarta si mientras tanto cambió la sesión (generation).
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, Callable

import numpy as np

from . import settings
from .commentary import CommentaryProvider, GeminiCommentaryProvider
from .core import Instrument, PriceSeries
from .engine import run_tick
from .errors import InvalidArgumentError, InvalidStateError
from .feed import generate_series, now_ms
from .portfolio import PortfolioState, new_portfolio
from .signals import Signal
from .strategy import Strategy
from .trades import Trade

logger = logging.getLogger(__name__)


# --------------------------------------------------------------------------------------
# Estado de sesión y snapshot
# --------------------------------------------------------------------------------------
@dataclass(frozen=True)
class InstrumentSession:
    """Par serie/cartera de un instrumento. Se sustituye entero en cada tick."""

    instrument: Instrument
    series: PriceSeries
    portfolio: PortfolioState
    generation: int


@dataclass(frozen=True)
class Snapshot:
    instrument: Instrument
    strategy: Strategy
    series: PriceSeries
    portfolio: PortfolioState
    trades: tuple[Trade, ...]
    running: bool
    ticks: int
    last_signal: Signal | None = None
    last_error: str | None = None
    commentary: str | None = None

    @property
    def last_price(self) -> float | None:
        return self.series[-1].price if self.series else None

    def summary(self) -> dict:
        prices = {self.instrument.symbol: self.last_price} if self.series else None
        return self.portfolio.summary(prices)


# --------------------------------------------------------------------------------------
# Driver
# --------------------------------------------------------------------------------------
class SimulationDriver:
    """
    Parámetros de construcción
    --------------------------
    symbol          : instrumento inicial (default settings.SYMBOL).
    strategy        : Strategy inicial (default con los parámetros de settings).
    interval_s      : segundos entre ticks del loop (default settings.TICK_INTERVAL_S).
    initial_balance : efectivo de cada sesión (default settings.INITIAL_BALANCE).
    history         : puntos del histórico inicial (default settings.INITIAL_HISTORY).
    seed            : semilla del generador (None => no determinista).
    clock           : función que devuelve "ahora" en ms (default reloj de pared).
    provider        : proveedor de comentarios (default GeminiCommentaryProvider).
    """

    def __init__(
        self,
        symbol: str | None = None,
        strategy: Strategy | None = None,
        *,
        interval_s: float | None = None,
        initial_balance: float | None = None,
        history: int | None = None,
        seed: int | None = None,
        clock: Callable[[], int] | None = None,
        provider: CommentaryProvider | None = None,
        catalogue: dict[str, str] | None = None,
    ):
        self.interval_s = float(settings.TICK_INTERVAL_S if interval_s is None else interval_s)
        if self.interval_s <= 0:
            raise InvalidArgumentError(f"interval_s debe ser > 0 (recibido {self.interval_s})")
        self.initial_balance = float(
            settings.INITIAL_BALANCE if initial_balance is None else initial_balance
        )
        self.history = int(settings.INITIAL_HISTORY if history is None else history)
        if self.history < 1:
            raise InvalidArgumentError(f"history debe ser >= 1 (recibido {self.history})")

        self._catalogue = settings.INSTRUMENTS if catalogue is None else catalogue
        self._rng = np.random.default_rng(seed)
        self._clock = clock or now_ms
        self._provider = provider
        self._strategy = strategy or Strategy(
            short_period=settings.SHORT_PERIOD,
            long_period=settings.LONG_PERIOD,
            trade_amount=settings.TRADE_AMOUNT,
        )

        self._lock = threading.RLock()
        # start/stop/reset; nunca se toma desde el hilo del loop
        self._control = threading.RLock()
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None
        self._running = False
        self._executor: ThreadPoolExecutor | None = None

        self._generation = 0
        self._ticks = 0
        self._last_signal: Signal | None = None
        self._last_error: str | None = None
        self._commentary: str | None = None
        self._session = self._new_session(self._instrument(symbol or settings.SYMBOL))

    # ----------------------------------------------------------------------------------
    # Helpers internos
    # ----------------------------------------------------------------------------------
    def _instrument(self, symbol: str) -> Instrument:
        if not isinstance(symbol, str) or not symbol.strip():
            raise InvalidArgumentError(f"símbolo inválido: {symbol!r}")
        return Instrument.from_symbol(symbol, self._catalogue)

    def _new_session(self, instrument: Instrument) -> InstrumentSession:
        self._generation += 1
        return InstrumentSession(
            instrument=instrument,
            series=generate_series(self.history, rng=self._rng, now=self._clock()),
            portfolio=new_portfolio(self.initial_balance),
            generation=self._generation,
        )

    def _reset_to(self, instrument: Instrument) -> None:
        # Hard reset: un start() concurrente espera a que termine el reset completo
        with self._control:
            self.stop()
            with self._lock:
                self._session = self._new_session(instrument)
                self._ticks = 0
                self._last_signal = None
                self._last_error = None
                self._commentary = None
        logger.info(
            "Sesión reiniciada: %s (%s) generation=%s",
            instrument.symbol,
            instrument.name,
            self._generation,
        )

    # ----------------------------------------------------------------------------------
    # Propiedades
    # ----------------------------------------------------------------------------------
    @property
    def running(self) -> bool:
        return self._running

    @property
    def strategy(self) -> Strategy:
        return self._strategy

    @property
    def instrument(self) -> Instrument:
        return self._session.instrument

    # ----------------------------------------------------------------------------------
    # Ciclo de vida del loop
    # ----------------------------------------------------------------------------------
    def start(self) -> None:
        with self._control, self._lock:
            if self._running:
                return
            self._stop_event.clear()
            self._last_error = None
            self._running = True
            self._thread = threading.Thread(
                target=self._run_loop, name=f"smabot-{self.instrument.symbol}", daemon=True
            )
            self._thread.start()
        logger.info(
            "Simulación iniciada: %s cada %.2fs | %s",
            self.instrument.symbol,
            self.interval_s,
            self._strategy,
        )

    def stop(self) -> None:
        with self._control:
            self._stop_event.set()
            thread = self._thread
            # join fuera de self._lock: el tick en curso necesita el lock para terminar
            if thread is not None and thread is not threading.current_thread():
                thread.join()
            with self._lock:
                if self._running:
                    logger.info("Simulación detenida tras %s ticks", self._ticks)
                self._running = False
                if thread is not threading.current_thread():
                    self._thread = None

    def _run_loop(self) -> None:
        while not self._stop_event.wait(self.interval_s):
            try:
                self.tick()
            except Exception as e:
                logger.exception("Error en el tick %s; se detiene la simulación", self._ticks + 1)
                with self._lock:
                    self._last_error = f"{type(e).__name__}: {e}"
                    self._running = False
                self._stop_event.set()
                return

    # ----------------------------------------------------------------------------------
    # Tick
    # ----------------------------------------------------------------------------------
    def tick(self) -> Signal:
        """Ejecuta un tick serializado y sustituye el par serie/cartera."""
        with self._lock:
            session = self._session
            result = run_tick(
                session.series,
                self._strategy,
                session.portfolio,
                session.instrument.symbol,
                rng=self._rng,
                now=self._clock(),
            )
            self._session = InstrumentSession(
                instrument=session.instrument,
                series=result.series,
                portfolio=result.state,
                generation=session.generation,
            )
            self._ticks += 1
            self._last_signal = result.signal
            logger.debug(
                "tick=%s %s price=%.4f signal=%s",
                self._ticks,
                session.instrument.symbol,
                result.price,
                result.signal.value,
            )
            return result.signal

    # ----------------------------------------------------------------------------------
    # Controles (rechazados o serializados respecto al loop)
    # ----------------------------------------------------------------------------------
    def set_strategy(self, **changes: Any) -> Strategy:
        """
        Cambio parcial de parámetros. Mientras corre -> InvalidStateError.
        Claves/valores inválidos -> InvalidArgumentError. En ambos casos no
        se modifica nada.
        """
        with self._lock:
            if self._running:
                raise InvalidStateError("no se puede cambiar la estrategia con la simulación en marcha")
            self._strategy = self._strategy.updated(**changes)
            logger.info("Estrategia actualizada: %s", self._strategy)
            return self._strategy

    def select_instrument(self, symbol: str) -> Instrument:
        """Reset completo a `symbol`. Si el loop corría, queda parado."""
        instrument = self._instrument(symbol)
        self._reset_to(instrument)
        return instrument

    def reset(self) -> None:
        self._reset_to(self.instrument)

    def get_snapshot(self) -> Snapshot:
        with self._lock:
            s = self._session
            return Snapshot(
                instrument=s.instrument,
                strategy=self._strategy,
                series=s.series,
                portfolio=s.portfolio,
                trades=s.portfolio.trades,
                running=self._running,
                ticks=self._ticks,
                last_signal=self._last_signal,
                last_error=self._last_error,
                commentary=self._commentary,
            )

    # ----------------------------------------------------------------------------------
    # Comentario de mercado (best-effort, fuera del camino del tick)
    # ----------------------------------------------------------------------------------
    def request_commentary(self) -> Future:
        """
        Lanza la petición en segundo plano y devuelve el Future con el texto.
        El texto se guarda en el snapshot solo si la sesión no cambió.
        """
        with self._lock:
            instrument = self._session.instrument
            generation = self._session.generation
            self._commentary = None
            if self._provider is None:
                self._provider = GeminiCommentaryProvider()
            if self._executor is None:
                self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="smabot-insight")
            provider = self._provider
            executor = self._executor

        def _fetch() -> str:
            try:
                text = provider.get_market_insight(instrument)
            except Exception as e:
                # Un proveedor no debería lanzar; si lo hace, se convierte en texto
                logger.exception("Proveedor de comentarios falló")
                text = f"Error fetching analysis: {e}"
            with self._lock:
                if self._session.generation == generation:
                    self._commentary = text
                else:
                    logger.info("Comentario de %s descartado: la sesión cambió", instrument.symbol)
            return text

        return executor.submit(_fetch)

    def close(self) -> None:
        self.stop()
        if self._executor is not None:
            self._executor.shutdown(wait=False, cancel_futures=True)
            self._executor = None
