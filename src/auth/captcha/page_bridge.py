"""In-page helpers for handing a solved reCAPTCHA token to the widget.

The widget keeps its state in ``window.___grecaptcha_cfg.clients``, a
minified object graph whose property names change between vendor
releases. Nothing here depends on one fixed path: the scripts walk the
graph with a bounded depth, and the ordered path lists below are tried in
priority order.
"""

import logging
from typing import Any, Callable, Dict, List, Optional, Protocol, Tuple

from src.models import CallbackLocation

logger = logging.getLogger(__name__)


class PageScriptExecutor(Protocol):
    """Anything that can run a script in the page. A Playwright Page fits."""

    async def evaluate(self, expression: str, arg: Any = None) -> Any:
        ...


# Completion callback spellings, most likely first
CALLBACK_PATHS = [
    "callback",
    "u.u.callback",
    "u.callback",
    "I.callback",
    "l.callback",
    "u.l.callback",
    "u.u.l",
]

# Objects that have held getResponse in past widget releases
OVERRIDE_PATTERNS = [
    "u.J", "i.J", "u.j", "i.j",
    "u.U", "u.P", "u.W", "u.Y", "u.F", "u.R", "u.X",
    "j", "U", "P", "W", "Y", "F", "R", "X",
]

MAX_TRAVERSAL_DEPTH = 4

# Below depth 1 the walk only follows these keys
RECURSE_KEYS = ["u", "i", "J", "grecaptcha", "getResponse", "callback"]

SKIP_KEYS = [
    # DOM
    "parentNode", "childNodes", "children", "nextSibling", "previousSibling",
    "parentElement", "firstChild", "lastChild", "nextElementSibling",
    "previousElementSibling", "ownerDocument", "documentElement", "body",
    "offsetParent", "offsetTop", "offsetLeft", "clientTop", "clientLeft",
    "scrollTop", "scrollLeft", "style", "classList", "attributes",
    "innerHTML", "outerHTML", "textContent", "innerText",
    # React fiber
    "__reactFiber$", "_reactInternalFiber", "stateNode", "elementType",
    "pendingProps", "memoizedProps", "updateQueue", "memoizedState",
    "dependencies", "mode", "effectTag", "nextEffect", "firstEffect",
    "lastEffect", "expirationTime", "childExpirationTime", "alternate",
    "return", "child", "sibling", "index", "ref", "key", "type",
    # window / document
    "frames", "defaultView", "contentWindow", "contentDocument",
    "location", "history", "navigator", "screen", "console",
]

DETECT_CHALLENGE_SCRIPT = """
() => {
    const info = { siteKey: null, source: null, invisible: false, hasConfig: false, clientIds: [] };
    const cfg = window.___grecaptcha_cfg;
    if (cfg && cfg.clients) {
        info.hasConfig = true;
        info.clientIds = Object.keys(cfg.clients);
    }
    const el = document.querySelector('[data-sitekey]');
    if (el) {
        info.siteKey = el.getAttribute('data-sitekey');
        info.source = 'data-sitekey';
        info.invisible = el.getAttribute('data-size') === 'invisible';
        return info;
    }
    const frame = document.querySelector('iframe[src*="recaptcha"][src*="k="]');
    if (frame) {
        try {
            const url = new URL(frame.src);
            info.siteKey = url.searchParams.get('k');
            info.source = 'iframe';
            info.invisible = url.searchParams.get('size') === 'invisible';
        } catch (e) {}
    }
    return info;
}
"""

CLIENT_SUMMARY_SCRIPT = """
(paths) => {
    const cfg = window.___grecaptcha_cfg;
    if (!cfg || !cfg.clients) return [];
    const resolve = (obj, path) => path.split('.').reduce(
        (o, k) => (o === null || o === undefined ? undefined : o[k]), obj);
    return Object.keys(cfg.clients).map((id) => {
        const client = cfg.clients[id];
        let visible = false;
        try {
            const el = client.element;
            visible = !!el && typeof el === 'object' &&
                (el.offsetParent !== null || el.offsetWidth > 0 || el.offsetHeight > 0);
        } catch (e) {}
        const callbackPaths = [];
        for (const path of paths) {
            try {
                if (typeof resolve(client, path) === 'function') callbackPaths.push(path);
            } catch (e) {}
        }
        return { id: id, elementVisible: visible, callbackPaths: callbackPaths };
    });
}
"""

OVERRIDE_GET_RESPONSE_SCRIPT = """
({ token, patterns, skipKeys, recurseKeys, maxDepth }) => {
    const cfg = window.___grecaptcha_cfg;
    if (!cfg || !cfg.clients) return 0;
    const skip = new Set(skipKeys);
    const recurse = new Set(recurseKeys);
    const solved = function () { return token; };
    const resolve = (obj, path) => path.split('.').reduce(
        (o, k) => (o === null || o === undefined ? undefined : o[k]), obj);

    const isIrrelevant = (obj) => {
        if (!obj || typeof obj !== 'object') return false;
        try {
            if (obj.nodeType !== undefined || obj.tagName !== undefined) return true;
            if (obj._reactInternalFiber !== undefined || obj.__reactFiber$ !== undefined) return true;
            if (obj.stateNode !== undefined && obj.elementType !== undefined) return true;
            if (obj.window === obj) return true;
            if (obj.jquery !== undefined) return true;
        } catch (e) {
            return true;
        }
        return false;
    };

    const skipPath = (key, path) => skip.has(key) ||
        path.includes('__reactFiber$') || path.includes('stateNode') ||
        path.includes('ownerDocument') || path.includes('defaultView.frames');

    const overrideOn = (obj) => {
        let count = 0;
        if (typeof obj.getResponse === 'function') {
            obj.getResponse = solved;
            count++;
        }
        if (obj.grecaptcha && typeof obj.grecaptcha === 'object' &&
                typeof obj.grecaptcha.getResponse === 'function') {
            obj.grecaptcha.getResponse = solved;
            count++;
        }
        return count;
    };

    const walk = (obj, path, depth) => {
        if (depth > maxDepth || isIrrelevant(obj)) return 0;
        let count = 0;
        for (const key in obj) {
            try {
                const value = obj[key];
                const current = path ? path + '.' + key : key;
                if (skipPath(key, current)) continue;
                if (value && typeof value === 'object') {
                    count += overrideOn(value);
                    if ((depth <= 1 || recurse.has(key)) && !isIrrelevant(value)) {
                        count += walk(value, current, depth + 1);
                    }
                }
            } catch (e) {
                continue;
            }
        }
        return count;
    };

    let total = 0;
    for (const id in cfg.clients) {
        total += walk(cfg.clients[id], 'clients.' + id, 0);
    }

    for (const id in cfg.clients) {
        const client = cfg.clients[id];
        for (const pattern of patterns) {
            try {
                const obj = resolve(client, pattern);
                if (!obj || typeof obj !== 'object') continue;
                if (typeof obj.getResponse === 'function') {
                    obj.getResponse = solved;
                    total++;
                }
                if (obj.grecaptcha && typeof obj.grecaptcha === 'object') {
                    if (typeof obj.grecaptcha.getResponse === 'function') {
                        obj.grecaptcha.getResponse = solved;
                        total++;
                    }
                } else {
                    obj.grecaptcha = { getResponse: solved };
                    total++;
                }
                for (const key of Object.keys(obj)) {
                    const value = obj[key];
                    if (value && typeof value === 'object' && typeof value.getResponse === 'function') {
                        value.getResponse = solved;
                        total++;
                    }
                }
            } catch (e) {
                continue;
            }
        }
    }

    const g = window.grecaptcha;
    if (g && typeof g === 'object') {
        g.getResponse = solved;
        total++;
        const render = g.render;
        if (typeof render === 'function') {
            g.render = function (container, params) {
                if (params && typeof params === 'object') {
                    const original = params.callback;
                    params.callback = function () {
                        return typeof original === 'function' ? original(token) : token;
                    };
                }
                return render.call(this, container, params);
            };
            total++;
        }
    }

    document.querySelectorAll('textarea[name="g-recaptcha-response"]').forEach((el) => {
        el.value = token;
        el.innerHTML = token;
    });

    return total;
}
"""

INVOKE_CALLBACK_SCRIPT = """
({ clientId, path, token }) => {
    const cfg = window.___grecaptcha_cfg;
    if (!cfg || !cfg.clients || !cfg.clients[clientId]) {
        return { invoked: false, error: 'client not found' };
    }
    const fn = path.split('.').reduce(
        (o, k) => (o === null || o === undefined ? undefined : o[k]), cfg.clients[clientId]);
    if (typeof fn !== 'function') {
        return { invoked: false, error: 'callback is not a function' };
    }
    try {
        fn(token);
        return { invoked: true, error: null };
    } catch (e) {
        return { invoked: false, error: String(e) };
    }
}
"""

ANALYZE_CALLBACKS_SCRIPT = """
(paths) => {
    const cfg = window.___grecaptcha_cfg;
    if (!cfg || !cfg.clients) return [];
    const resolve = (obj, path) => path.split('.').reduce(
        (o, k) => (o === null || o === undefined ? undefined : o[k]), obj);
    const results = [];
    for (const id in cfg.clients) {
        for (const path of paths) {
            let fn;
            try { fn = resolve(cfg.clients[id], path); } catch (e) { continue; }
            if (typeof fn !== 'function') continue;
            const source = fn.toString();
            const match = source.match(/function\\s*\\(([^)]*)\\)|([^=\\s]*)\\s*=>/);
            const param = match ? (match[1] || match[2] || '').trim() : '';
            let usesParameter = false;
            if (param) {
                const uses = source.match(new RegExp('\\\\b' + param + '\\\\b', 'g')) || [];
                usesParameter = uses.length > 1;
            }
            results.push({
                path: id + '.' + path,
                preview: source.substring(0, 200),
                usesGetResponse: source.includes('getResponse()'),
                usesParameter: usesParameter,
                parameterName: param || null,
            });
        }
    }
    return results;
}
"""


ClientProbe = Callable[[List[Dict[str, Any]]], Optional[str]]


def _client_with_callback_container(clients: List[Dict[str, Any]]) -> Optional[str]:
    for client in clients:
        if "u.u.callback" in client.get("callbackPaths", []):
            return client["id"]
    return None


def _client_with_visible_element(clients: List[Dict[str, Any]]) -> Optional[str]:
    for client in clients:
        if client.get("elementVisible"):
            return client["id"]
    return None


def _only_client(clients: List[Dict[str, Any]]) -> Optional[str]:
    if len(clients) == 1:
        return clients[0]["id"]
    return None


def _default_client(clients: List[Dict[str, Any]]) -> Optional[str]:
    if any(client["id"] == "0" for client in clients):
        return "0"
    return None


def _first_client(clients: List[Dict[str, Any]]) -> Optional[str]:
    return clients[0]["id"] if clients else None


ACTIVE_CLIENT_PROBES: List[Tuple[str, ClientProbe]] = [
    ("callback_container", _client_with_callback_container),
    ("visible_element", _client_with_visible_element),
    ("single_client", _only_client),
    ("default_id", _default_client),
    ("first_client", _first_client),
]


class PageScriptBridge:
    """Runs the reCAPTCHA helper scripts through a page script executor."""

    def __init__(self, executor: PageScriptExecutor):
        self.executor = executor

    async def detect_challenge(self) -> Optional[Dict[str, Any]]:
        """Return site key information if a reCAPTCHA widget is on the page."""
        info = await self.executor.evaluate(DETECT_CHALLENGE_SCRIPT)
        if not info or not info.get("siteKey"):
            return None
        logger.info(f"Detected reCAPTCHA widget via {info.get('source')}: {info['siteKey']}")
        return info

    async def describe_clients(self) -> List[Dict[str, Any]]:
        return await self.executor.evaluate(CLIENT_SUMMARY_SCRIPT, CALLBACK_PATHS) or []

    async def enumerate_client_ids(self) -> List[str]:
        """IDs of every widget client registered in the page."""
        clients = await self.describe_clients()
        client_ids = [client["id"] for client in clients]
        logger.info(f"Found reCAPTCHA client IDs: {client_ids}")
        return client_ids

    async def select_active_client_id(self) -> Optional[str]:
        """Pick the client most likely to be the widget the user sees."""
        clients = await self.describe_clients()
        for name, probe in ACTIVE_CLIENT_PROBES:
            client_id = probe(clients)
            if client_id is not None:
                logger.info(f"Active reCAPTCHA client {client_id} (probe: {name})")
                return client_id
        logger.info("No reCAPTCHA client found")
        return None

    async def inject_solution(self, token: str) -> bool:
        """Make every reachable getResponse return ``token``.

        Returns True when at least one override was installed.
        """
        count = await self.executor.evaluate(
            OVERRIDE_GET_RESPONSE_SCRIPT,
            {
                "token": token,
                "patterns": OVERRIDE_PATTERNS,
                "skipKeys": SKIP_KEYS,
                "recurseKeys": RECURSE_KEYS,
                "maxDepth": MAX_TRAVERSAL_DEPTH,
            },
        )
        count = count or 0
        if count:
            logger.info(f"✅ Overrode {count} getResponse functions")
        else:
            logger.warning("❌ No getResponse functions found to override")
        return count > 0

    async def find_callback(self) -> Optional[CallbackLocation]:
        """First client/path pair that resolves to a function."""
        for client in await self.describe_clients():
            available = client.get("callbackPaths", [])
            for path in CALLBACK_PATHS:
                if path in available:
                    logger.info(f"Found working callback: client[{client['id']}].{path}")
                    return CallbackLocation(client_id=client["id"], path=path)
        return None

    async def invoke_callback(self, token: str) -> bool:
        """Call the widget completion callback with ``token``."""
        location = await self.find_callback()
        if location is None:
            logger.warning("No reCAPTCHA completion callback found")
            return False

        result = await self.executor.evaluate(
            INVOKE_CALLBACK_SCRIPT,
            {"clientId": location.client_id, "path": location.path, "token": token},
        )
        if result and result.get("invoked"):
            logger.info(f"Invoked callback client[{location.client_id}].{location.path}")
            return True
        error = result.get("error") if result else "no result"
        logger.warning(
            f"Callback client[{location.client_id}].{location.path} failed: {error}"
        )
        return False

    async def analyze_callbacks(self) -> List[Dict[str, Any]]:
        """Describe each callable callback for troubleshooting."""
        return await self.executor.evaluate(ANALYZE_CALLBACKS_SCRIPT, CALLBACK_PATHS) or []
