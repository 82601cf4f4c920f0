"""
Stealth - 页面环境的反检测调整（尽力而为）

脚本通过 Page.addScriptToEvaluateOnNewDocument 注入，在页面自身脚本之前执行。
"""

STEALTH_SOURCE = """
(() => {
    // -- navigator.webdriver --
    Object.defineProperty(navigator, 'webdriver', {
        get: () => undefined, configurable: true,
    });

    // -- navigator.languages --
    Object.defineProperty(navigator, 'languages', {
        get: () => ["en-US", "en"], configurable: true,
    });

    // -- navigator.plugins (empty in headless) --
    if (!navigator.plugins || navigator.plugins.length === 0) {
        Object.defineProperty(navigator, 'plugins', {
            get: () => [
                { name: "PDF Viewer", filename: "internal-pdf-viewer" },
                { name: "Chrome PDF Viewer", filename: "internal-pdf-viewer" },
                { name: "Chromium PDF Viewer", filename: "internal-pdf-viewer" },
            ],
            configurable: true,
        });
    }

    // -- window.chrome --
    if (!window.chrome) {
        window.chrome = { runtime: {}, loadTimes: () => ({}), csi: () => ({}) };
    }

    // -- navigator.permissions (headless inconsistency fix) --
    if (navigator.permissions) {
        const _origQuery = navigator.permissions.query.bind(navigator.permissions);
        navigator.permissions.query = function(desc) {
            if (desc.name === 'notifications') {
                return Promise.resolve({
                    state: Notification.permission === 'default'
                        ? 'prompt' : Notification.permission,
                    onchange: null,
                });
            }
            return _origQuery(desc);
        };
    }

    // -- WebGL vendor / renderer --
    const patchWebGL = (proto) => {
        const _origGetParam = proto.getParameter;
        proto.getParameter = function(param) {
            if (param === 0x9245) return "Intel Inc.";
            if (param === 0x9246) return "Intel Iris OpenGL Engine";
            return _origGetParam.call(this, param);
        };
    };
    patchWebGL(WebGLRenderingContext.prototype);
    if (typeof WebGL2RenderingContext !== 'undefined') {
        patchWebGL(WebGL2RenderingContext.prototype);
    }

    // -- window outer dimensions (outer === 0 is headless tell) --
    if (window.outerWidth === 0) {
        Object.defineProperty(window, 'outerWidth', {
            get: () => window.innerWidth, configurable: true,
        });
        Object.defineProperty(window, 'outerHeight', {
            get: () => window.innerHeight + 85, configurable: true,
        });
    }
})();
"""
